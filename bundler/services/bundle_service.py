"""Bundle service: seals a file group into one encrypted, expiring artifact."""

import asyncio
import os
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from common.constants import ARCHIVE_SUFFIX, ENVELOPE_SUFFIX
from common.logging_config import get_logger
from bundler import config
from bundler.archive.envelope import wrap_for_recipients
from bundler.archive.zip_encoder import encode_archive
from bundler.auth import hash_secret
from bundler.exceptions import ArchiveIOError, EmptyGroupError, InvalidGroupError, PersistenceConflictError
from bundler.migration import MigrationWorker
from bundler.repositories.group_repository import FileGroup, FileItem, GroupRepository
from bundler.repositories.user_key_repository import UserKeyRepository
from bundler.service_locator import get_migration_worker
from bundler.shortlink import make_new_code, make_url
from bundler.types import BundleResult
from bundler.utils import generate_uuid, utcnow

logger = get_logger(__name__)


def unique_archive_names(items: Sequence[FileItem]) -> List[str]:
    """
    Display names for the archive, suffixing repeats as ``name (1).ext``.
    """
    seen = set()
    names = []
    for item in items:
        candidate = item.realname
        path = Path(item.realname)
        counter = 1
        while candidate in seen:
            candidate = f"{path.stem} ({counter}){path.suffix}"
            counter += 1
        seen.add(candidate)
        names.append(candidate)
    return names


class BundleService:
    def __init__(
        self,
        migration_worker: Optional[MigrationWorker] = None,
        upload_dir: Optional[str] = None,
        bundle_dir: Optional[str] = None,
        claim_ttl_seconds: Optional[int] = None,
    ):
        self.group_repo = GroupRepository()
        self.key_repo = UserKeyRepository()
        self.migration_worker = migration_worker or get_migration_worker()
        self.upload_dir = Path(upload_dir or config.UPLOAD_DIR)
        self.bundle_dir = Path(bundle_dir or config.BUNDLE_DIR)
        self.claim_ttl = timedelta(seconds=claim_ttl_seconds or config.CLAIM_TTL_SECONDS)

    async def bundle_group(
        self,
        group_id: str,
        requester_id: str,
        expired_at: datetime,
        passcode: str,
        download_password: Optional[str] = None,
        user_ids: Optional[Sequence[str]] = None,
    ) -> BundleResult:
        logger.info(f"Bundling file group {group_id} [user_id={requester_id}]")

        now = utcnow()
        claim_token = generate_uuid()
        group = self.group_repo.claim_owned_unbundled_group(
            group_id=group_id,
            owner_id=requester_id,
            claim_token=claim_token,
            now=now,
            stale_before=now - self.claim_ttl,
        )
        if group is None:
            logger.warning(f"Bundle refused: group {group_id} missing, not owned or already bundled")
            raise InvalidGroupError(f"Invalid file group {group_id}")

        try:
            passcode_hash = await asyncio.to_thread(hash_secret, passcode)
            artifact_path, recipients, skipped = await asyncio.to_thread(
                self._build_artifact, group, passcode, user_ids
            )

            group.file_key = str(artifact_path)
            group.archive_passcode = passcode_hash
            group.expired_at = expired_at
            group.bundled_at = utcnow()
            group.shared_to_user_ids = recipients

            if self.group_repo.save_bundled_group(group) <= 0:
                logger.error(f"Bundle state for group {group_id} was not saved; artifact left at {artifact_path}")
                raise PersistenceConflictError(f"Unable to save bundled file group {group_id}")
        except BaseException:
            self.group_repo.release_claim(group_id, claim_token)
            raise

        logger.info(f"File group {group_id} bundled into {group.file_key}")

        self.migration_worker.dispatch(group.group_id, group.file_key, group.expired_at)

        pin_hash = None
        if download_password:
            pin_hash = await asyncio.to_thread(hash_secret, download_password)

        code = make_new_code(group.group_id, pin_hash)

        return BundleResult(
            group_id=group.group_id,
            expired_at=expired_at,
            download_url=make_url(code),
            file_key=group.file_key,
            recipients=recipients,
            skipped_files=skipped,
        )

    def _build_artifact(
        self,
        group: FileGroup,
        passcode: str,
        user_ids: Optional[Sequence[str]],
    ) -> Tuple[Path, List[str], List[str]]:
        members = self.group_repo.list_members(group.group_id)
        if not members:
            logger.warning(f"Bundle refused: group {group.group_id} has no files")
            raise EmptyGroupError(f"Empty file group {group.group_id}")

        entries = [
            (self.upload_dir / item.filename, name)
            for item, name in zip(members, unique_archive_names(members))
        ]
        archive_path = self.bundle_dir / f"{group.group_id}{ARCHIVE_SUFFIX}"
        leftovers = self._set_aside_leftovers(archive_path)
        encoded = encode_archive(entries, passcode, archive_path)

        if leftovers and not encoded.included:
            # the files of an earlier attempt only live in its leftover artifact
            encoded.path.unlink(missing_ok=True)
            raise ArchiveIOError(
                f"Group {group.group_id} has no files left to archive; "
                f"earlier artifact kept at {', '.join(str(p) for p in leftovers)}"
            )

        if encoded.skipped:
            logger.warning(
                f"Group {group.group_id}: {len(encoded.skipped)} file(s) could not be read and were left out"
            )

        if not user_ids:
            return encoded.path, [], encoded.skipped

        # the owner keeps access even when not listed
        shares = list(user_ids) + [group.owner_id]
        keys = self.key_repo.resolve_public_keys(shares)

        missing = set(shares) - {key.user_id for key in keys}
        if missing:
            logger.warning(f"Group {group.group_id}: no public key registered for {sorted(missing)}")

        if not keys:
            return encoded.path, [], encoded.skipped

        wrapped_path = wrap_for_recipients(
            encoded.path,
            self.bundle_dir,
            [key.public_key for key in keys],
        )
        return wrapped_path, [key.user_id for key in keys], encoded.skipped

    def _set_aside_leftovers(self, archive_path: Path) -> List[Path]:
        """
        Rename artifacts left by an attempt that failed before it was saved.

        Their sources are already gone, so they are never overwritten.
        """
        stamp = utcnow().strftime("%Y%m%dT%H%M%S%f")
        moved = []
        for suffix in ("", ".part", ENVELOPE_SUFFIX, ENVELOPE_SUFFIX + ".part"):
            leftover = archive_path.with_name(archive_path.name + suffix)
            if not leftover.exists():
                continue
            target = leftover.with_name(f"{leftover.name}.{stamp}.orphan")
            try:
                os.replace(leftover, target)
            except OSError as e:
                raise ArchiveIOError(f"Unable to move earlier artifact {leftover} aside: {e}") from e
            logger.warning(f"Earlier unsaved artifact {leftover} moved to {target}")
            moved.append(target)
        return moved

    def remint_link(self, group_id: str, requester_id: str, download_password: Optional[str] = None) -> str:
        """
        Mint the access credential of a bundled group that ended up without one.

        Raises:
            InvalidGroupError: Group missing, not owned or not bundled
            LinkAlreadyExistsError: The group already has a credential
        """
        group = self.group_repo.get_owned_bundled_group(group_id, requester_id)
        if group is None:
            raise InvalidGroupError(f"Invalid file group {group_id}")

        pin_hash = hash_secret(download_password) if download_password else None
        code = make_new_code(group.group_id, pin_hash)
        logger.info(f"Download link re-minted for group {group_id} [user_id={requester_id}]")
        return make_url(code)
