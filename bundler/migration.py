"""Background migration of finished artifacts to the remote object store."""

import asyncio
from datetime import datetime
from pathlib import Path
from typing import Optional, Set

from common.logging_config import get_logger
from bundler.object_store import HttpObjectStore, ObjectStore
from bundler.repositories.group_repository import GroupRepository

logger = get_logger(__name__)


def is_remote_locator(file_key: Optional[str]) -> bool:
    """
    True when a group's ``file_key`` is an object store key rather than a local path.

    Local locators always carry a directory component; remote keys are bare
    artifact names.
    """
    if not file_key:
        return False
    return "/" not in file_key and "\\" not in file_key


class MigrationWorker:
    """
    Fire-and-forget uploader.

    ``dispatch`` schedules one migration on the running event loop and
    returns immediately. Outcomes are only visible through the group's
    stored locator; failures are logged and never retried.
    """

    def __init__(self, object_store: Optional[ObjectStore] = None):
        self.object_store = object_store or HttpObjectStore()
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(self, group_id: str, local_path: str, expired_at: Optional[datetime]) -> asyncio.Task:
        task = asyncio.create_task(self.migrate(group_id, local_path, expired_at))
        # the loop only keeps weak references to tasks
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug(f"Migration dispatched [group_id={group_id}] path={local_path}")
        return task

    async def migrate(self, group_id: str, local_path: str, expired_at: Optional[datetime]) -> bool:
        """
        Upload one artifact and swap the group's locator to the remote key.

        The artifact is streamed from disk, never read into memory whole.

        Returns:
            True if the artifact now lives in the object store
        """
        path = Path(local_path)
        key = path.name

        try:
            artifact = await asyncio.to_thread(open, path, 'rb')
        except OSError as e:
            logger.error(f"Error opening bundled file at {path}, is the file removed? {e}")
            return False

        try:
            with artifact:
                await self.object_store.put_object(key, artifact, expired_at)
        except Exception as e:
            logger.error(f"Object store upload failed for {key} [group_id={group_id}]: {e}")
            return False

        updated = await asyncio.to_thread(GroupRepository.update_file_key, group_id, key)
        if not updated:
            logger.warning(f"Uploaded {key} but group {group_id} was not updated; keeping local copy")
            return False

        try:
            path.unlink()
        except OSError as e:
            logger.warning(f"Uploaded {key} but could not remove local copy {path}: {e}")

        logger.info(f"Artifact migrated to object store: {key} [group_id={group_id}]")
        return True
