"""Tests for the bundle orchestrator."""

import asyncio
from unittest.mock import Mock

import pytest
import pyzipper

from bundler.archive.envelope import decrypt_file
from bundler.archive.identities import X25519Identity, generate_keypair
from bundler.auth import verify_secret
from bundler.exceptions import (
    ArchiveIOError,
    EmptyGroupError,
    EncryptionError,
    InvalidGroupError,
    LinkAlreadyExistsError,
    PersistenceConflictError,
)
from bundler.migration import MigrationWorker
from bundler.repositories.group_repository import FileItem, GroupRepository
from bundler.repositories.short_link_repository import ShortLinkRepository
from bundler.repositories.user_key_repository import UserKeyRepository
from bundler.services.bundle_service import BundleService, unique_archive_names
from bundler.utils import utcnow

PASSCODE = "zip-pass-123"


@pytest.fixture
def migration_worker():
    return Mock(spec=MigrationWorker)


@pytest.fixture
def service(storage, migration_worker):
    return BundleService(migration_worker=migration_worker)


def _bundle(service, group_id, owner_id, expiry, **kwargs):
    return asyncio.run(service.bundle_group(group_id, owner_id, expiry, PASSCODE, **kwargs))


def _zip_contents(path, passcode=PASSCODE):
    with pyzipper.AESZipFile(path) as zf:
        zf.setpassword(passcode.encode())
        return {name: zf.read(name) for name in zf.namelist()}


class TestUniqueArchiveNames:
    def test_repeats_get_counter_suffix(self):
        items = [
            FileItem(str(i), "g", str(i), name, 1, utcnow())
            for i, name in enumerate(["a.txt", "a.txt", "b", "a.txt", "b"])
        ]
        assert unique_archive_names(items) == ["a.txt", "a (1).txt", "b", "a (2).txt", "b (1)"]


class TestBundleGroup:
    def test_plain_bundle(self, service, migration_worker, make_user, make_group, storage, expiry):
        upload_dir, bundle_dir = storage
        alice = make_user("alice")
        group_id = make_group(alice, [("a.txt", b"AAA"), ("b.txt", b"BBB")])

        result = _bundle(service, group_id, alice, expiry)

        assert result.expired_at == expiry
        assert result.download_url.startswith("https://sb.test/d/")
        assert result.file_key == str(bundle_dir / f"{group_id}.zip")
        assert _zip_contents(result.file_key) == {"a.txt": b"AAA", "b.txt": b"BBB"}
        assert list(upload_dir.iterdir()) == []

        stored = GroupRepository.get_by_id(group_id)
        assert stored.bundled_at is not None
        assert stored.file_key == result.file_key
        assert stored.expired_at == expiry
        assert stored.shared_to_user_ids == []
        assert verify_secret(PASSCODE, stored.archive_passcode)

        migration_worker.dispatch.assert_called_once_with(group_id, result.file_key, expiry)

        link = ShortLinkRepository.get_by_group(group_id)
        assert result.download_url.endswith(f"/d/{link.code}")
        assert link.pin_hash is None

    def test_download_password_sets_pin(self, service, make_user, make_group, expiry):
        alice = make_user("alice")
        group_id = make_group(alice, [("a.txt", b"A")])

        _bundle(service, group_id, alice, expiry, download_password="pin-123456")

        link = ShortLinkRepository.get_by_group(group_id)
        assert verify_secret("pin-123456", link.pin_hash)

    def test_second_bundle_is_invalid_group(self, service, make_user, make_group, expiry):
        alice = make_user("alice")
        group_id = make_group(alice, [("a.txt", b"A")])
        _bundle(service, group_id, alice, expiry)

        with pytest.raises(InvalidGroupError):
            _bundle(service, group_id, alice, expiry)

    def test_non_owner_is_invalid_group(self, service, make_user, make_group, expiry):
        alice, bob = make_user("alice"), make_user("bob")
        group_id = make_group(alice, [("a.txt", b"A")])

        with pytest.raises(InvalidGroupError):
            _bundle(service, group_id, bob, expiry)

    def test_unknown_group_is_invalid_group(self, service, make_user, expiry):
        alice = make_user("alice")
        with pytest.raises(InvalidGroupError):
            _bundle(service, "no-such-group", alice, expiry)

    def test_empty_group_writes_nothing_and_releases(self, service, migration_worker, make_user, make_group,
                                                    storage, expiry):
        _, bundle_dir = storage
        alice = make_user("alice")
        group_id = make_group(alice)

        with pytest.raises(EmptyGroupError):
            _bundle(service, group_id, alice, expiry)

        assert list(bundle_dir.iterdir()) == []
        assert GroupRepository.get_by_id(group_id).claim_token is None
        migration_worker.dispatch.assert_not_called()
        assert ShortLinkRepository.get_by_group(group_id) is None

    def test_unreadable_member_is_skipped(self, service, make_user, make_group, storage, expiry):
        upload_dir, _ = storage
        alice = make_user("alice")
        group_id = make_group(alice, [("gone.txt", b"G"), ("kept.txt", b"K")])
        missing = GroupRepository.list_members(group_id)[0]
        (upload_dir / missing.filename).unlink()

        result = _bundle(service, group_id, alice, expiry)

        assert result.skipped_files == ["gone.txt"]
        assert _zip_contents(result.file_key) == {"kept.txt": b"K"}
        assert GroupRepository.get_by_id(group_id).bundled_at is not None

    def test_duplicate_names_are_renamed(self, service, make_user, make_group, expiry):
        alice = make_user("alice")
        group_id = make_group(alice, [("r.txt", b"1"), ("r.txt", b"2")])

        result = _bundle(service, group_id, alice, expiry)

        assert _zip_contents(result.file_key) == {"r.txt": b"1", "r (1).txt": b"2"}

    def test_persistence_conflict_after_claim_lost(self, service, migration_worker, make_user, make_group,
                                                   monkeypatch, expiry):
        alice = make_user("alice")
        group_id = make_group(alice, [("a.txt", b"A")])
        monkeypatch.setattr(GroupRepository, "save_bundled_group", staticmethod(lambda group: 0))

        with pytest.raises(PersistenceConflictError):
            _bundle(service, group_id, alice, expiry)

        migration_worker.dispatch.assert_not_called()
        assert ShortLinkRepository.get_by_group(group_id) is None
        assert GroupRepository.get_by_id(group_id).claim_token is None

    def test_concurrent_bundles_exactly_one_succeeds(self, service, migration_worker, make_user, make_group,
                                                     expiry):
        alice = make_user("alice")
        group_id = make_group(alice, [("a.txt", b"A" * 10000)])

        async def race():
            return await asyncio.gather(
                *(service.bundle_group(group_id, alice, expiry, PASSCODE) for _ in range(4)),
                return_exceptions=True,
            )

        results = asyncio.run(race())

        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(successes) == 1
        assert all(isinstance(f, InvalidGroupError) for f in failures)
        assert migration_worker.dispatch.call_count == 1


class TestBundleForRecipients:
    def test_envelope_for_recipients_and_owner(self, service, make_user, make_group, storage, tmp_path, expiry):
        _, bundle_dir = storage
        alice, bob, carol = make_user("alice"), make_user("bob"), make_user("carol")
        keys = {}
        for user_id in (alice, bob):
            private_key, public_key = generate_keypair()
            UserKeyRepository.upsert_key(user_id, public_key, utcnow())
            keys[user_id] = private_key
        group_id = make_group(alice, [("a.txt", b"AAA")])

        result = _bundle(service, group_id, alice, expiry, user_ids=[bob, carol])

        assert result.file_key == str(bundle_dir / f"{group_id}.zip.sealed")
        assert result.recipients == [bob, alice]
        assert not (bundle_dir / f"{group_id}.zip").exists()
        assert GroupRepository.get_by_id(group_id).shared_to_user_ids == [bob, alice]

        for user_id, private_key in keys.items():
            out = tmp_path / f"{user_id}.zip"
            decrypt_file(result.file_key, out, [X25519Identity.from_private_key(private_key)])
            assert _zip_contents(out) == {"a.txt": b"AAA"}
            with pytest.raises(RuntimeError):
                _zip_contents(out, "not-the-passcode")

    def test_no_resolvable_keys_leaves_plain_zip(self, service, make_user, make_group, storage, expiry):
        _, bundle_dir = storage
        alice, bob = make_user("alice"), make_user("bob")
        group_id = make_group(alice, [("a.txt", b"A")])

        result = _bundle(service, group_id, alice, expiry, user_ids=[bob])

        assert result.file_key == str(bundle_dir / f"{group_id}.zip")
        assert result.recipients == []

    def test_encryption_failure_releases_claim(self, service, migration_worker, make_user, make_group,
                                               monkeypatch, expiry):
        alice, bob = make_user("alice"), make_user("bob")
        UserKeyRepository.upsert_key(bob, generate_keypair()[1], utcnow())
        group_id = make_group(alice, [("a.txt", b"A")])

        def boom(*args, **kwargs):
            raise EncryptionError("disk full")

        monkeypatch.setattr("bundler.services.bundle_service.wrap_for_recipients", boom)

        with pytest.raises(EncryptionError):
            _bundle(service, group_id, alice, expiry, user_ids=[bob])

        stored = GroupRepository.get_by_id(group_id)
        assert stored.bundled_at is None
        assert stored.claim_token is None
        migration_worker.dispatch.assert_not_called()

    def test_retry_after_failed_attempt_keeps_earlier_archive(self, service, migration_worker, make_user,
                                                              make_group, storage, monkeypatch, expiry):
        _, bundle_dir = storage
        alice, bob = make_user("alice"), make_user("bob")
        UserKeyRepository.upsert_key(bob, generate_keypair()[1], utcnow())
        group_id = make_group(alice, [("a.txt", b"only copy")])

        def boom(*args, **kwargs):
            raise EncryptionError("disk full")

        monkeypatch.setattr("bundler.services.bundle_service.wrap_for_recipients", boom)
        with pytest.raises(EncryptionError):
            _bundle(service, group_id, alice, expiry, user_ids=[bob])

        with pytest.raises(ArchiveIOError):
            _bundle(service, group_id, alice, expiry)

        stored = GroupRepository.get_by_id(group_id)
        assert stored.bundled_at is None
        assert stored.claim_token is None
        migration_worker.dispatch.assert_not_called()

        leftovers = list(bundle_dir.glob(f"{group_id}.zip.*.orphan"))
        assert len(leftovers) == 1
        assert _zip_contents(leftovers[0]) == {"a.txt": b"only copy"}
        assert not (bundle_dir / f"{group_id}.zip").exists()

    def test_leftover_artifact_is_moved_aside_not_replaced(self, service, make_user, make_group, storage,
                                                           expiry):
        _, bundle_dir = storage
        alice = make_user("alice")
        group_id = make_group(alice, [("a.txt", b"fresh")])
        (bundle_dir / f"{group_id}.zip").write_bytes(b"from an earlier attempt")

        result = _bundle(service, group_id, alice, expiry)

        assert _zip_contents(result.file_key) == {"a.txt": b"fresh"}
        leftovers = list(bundle_dir.glob(f"{group_id}.zip.*.orphan"))
        assert [p.read_bytes() for p in leftovers] == [b"from an earlier attempt"]


class TestRemintLink:
    def test_remint_after_link_lost(self, service, make_user, make_group, expiry):
        from bundler.database import get_db_connection

        alice = make_user("alice")
        group_id = make_group(alice, [("a.txt", b"A")])
        first = _bundle(service, group_id, alice, expiry)

        with pytest.raises(LinkAlreadyExistsError):
            service.remint_link(group_id, alice)

        with get_db_connection() as conn:
            conn.execute("DELETE FROM short_links WHERE group_id = ?", (group_id,))
            conn.commit()

        url = service.remint_link(group_id, alice, download_password="new-pin-1")
        assert url != first.download_url
        assert verify_secret("new-pin-1", ShortLinkRepository.get_by_group(group_id).pin_hash)

    def test_remint_requires_bundled_owned_group(self, service, make_user, make_group):
        alice, bob = make_user("alice"), make_user("bob")
        group_id = make_group(alice, [("a.txt", b"A")])

        with pytest.raises(InvalidGroupError):
            service.remint_link(group_id, alice)
        with pytest.raises(InvalidGroupError):
            service.remint_link(group_id, bob)
