"""Shared pytest fixtures for all tests."""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional

import pytest

from bundler.database import init_database
from bundler.repositories.group_repository import FileItem, GroupRepository
from bundler.repositories.user_repository import UserRepository
from bundler.utils import generate_uuid, utcnow


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    """Keep bcrypt cheap in tests."""
    monkeypatch.setattr("bundler.config.BCRYPT_ROUNDS", 4)


@pytest.fixture
def test_db(monkeypatch, tmp_path) -> Path:
    """
    Create a temporary test database for each test.
    """
    db_path = tmp_path / "test.db"
    monkeypatch.setattr("bundler.database.DATABASE_PATH", str(db_path))
    monkeypatch.setattr("bundler.config.DATABASE_PATH", str(db_path))
    init_database()
    return db_path


@pytest.fixture
def storage(monkeypatch, tmp_path):
    """
    Point upload and bundle directories at the test's tmp_path.

    Returns:
        (upload_dir, bundle_dir)
    """
    upload_dir = tmp_path / "uploads"
    bundle_dir = tmp_path / "bundles"
    upload_dir.mkdir()
    bundle_dir.mkdir()
    monkeypatch.setattr("bundler.config.UPLOAD_DIR", str(upload_dir))
    monkeypatch.setattr("bundler.config.BUNDLE_DIR", str(bundle_dir))
    monkeypatch.setattr("bundler.config.PUBLIC_BASE_URL", "https://sb.test")
    return upload_dir, bundle_dir


@pytest.fixture
def make_user(test_db):
    """Factory creating users directly in the store."""

    def _make_user(username: str) -> str:
        user_id = generate_uuid()
        UserRepository.create_user(
            user_id=user_id,
            username=username,
            password_hash="unused",
            api_key=f"sbx_{username}",
            api_key_expires_at=utcnow() + timedelta(hours=1),
            created_at=utcnow(),
        )
        return user_id

    return _make_user


@pytest.fixture
def make_group(test_db, storage):
    """
    Factory creating a group owned by ``owner_id`` with the given member files.

    ``files`` maps display names to contents; each is written to the upload
    directory under a random storage name, like a real upload.
    """
    upload_dir, _ = storage

    def _make_group(owner_id: str, files: Optional[List[tuple]] = None) -> str:
        group = GroupRepository.create_group(generate_uuid(), owner_id, utcnow())
        for realname, content in files or []:
            storage_name = generate_uuid()
            (upload_dir / storage_name).write_bytes(content)
            added = GroupRepository.add_item(
                FileItem(
                    item_id=generate_uuid(),
                    group_id=group.group_id,
                    filename=storage_name,
                    realname=realname,
                    size=len(content),
                    created_at=utcnow(),
                ),
                owner_id,
            )
            assert added
        return group.group_id

    return _make_group


@pytest.fixture
def expiry() -> datetime:
    return datetime(2030, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))


class FakeObjectStore:
    """In-memory object store recording every upload and the file it came from."""

    def __init__(self, error: Optional[Exception] = None):
        self.objects = {}
        self.expires = {}
        self.bodies = {}
        self.error = error

    async def put_object(self, key, body, expires):
        if self.error is not None:
            raise self.error
        self.objects[key] = body.read()
        self.expires[key] = expires
        self.bodies[key] = body


@pytest.fixture
def object_store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def failing_object_store() -> FakeObjectStore:
    from bundler.exceptions import ObjectStoreError

    return FakeObjectStore(error=ObjectStoreError("PUT failed: status=503"))
