"""Group service: file groups and their uploaded members."""

import os
import shutil
from pathlib import Path, PurePath
from typing import BinaryIO, Optional

from common.constants import STREAM_PIECE_SIZE_BYTES
from common.logging_config import get_logger
from bundler import config
from bundler.exceptions import InvalidGroupError, ValidationError
from bundler.repositories.group_repository import FileGroup, FileItem, GroupRepository
from bundler.utils import generate_uuid, utcnow

logger = get_logger(__name__)


def display_name(filename: Optional[str]) -> str:
    # browsers may send full client paths; only the last component is kept
    name = PurePath((filename or "").replace("\\", "/")).name.strip()
    if not name or name in (".", ".."):
        raise ValidationError("Uploaded file must have a name")
    return name


class GroupService:
    def __init__(self, upload_dir: Optional[str] = None):
        self.group_repo = GroupRepository()
        self.upload_dir = Path(upload_dir or config.UPLOAD_DIR)

    def create_group(self, owner_id: str) -> FileGroup:
        return self.group_repo.create_group(generate_uuid(), owner_id, utcnow())

    def add_file(self, group_id: str, owner_id: str, filename: Optional[str], stream: BinaryIO) -> FileItem:
        """
        Store an uploaded file under a random storage name and attach it to an open group.

        Raises:
            ValidationError: The upload has no usable name
            InvalidGroupError: Group missing, not owned, bundled or being bundled
        """
        realname = display_name(filename)
        storage_name = generate_uuid()
        target = self.upload_dir / storage_name

        self.upload_dir.mkdir(parents=True, exist_ok=True)
        with open(target, 'wb') as out:
            shutil.copyfileobj(stream, out, STREAM_PIECE_SIZE_BYTES)
        size = os.path.getsize(target)

        item = FileItem(
            item_id=generate_uuid(),
            group_id=group_id,
            filename=storage_name,
            realname=realname,
            size=size,
            created_at=utcnow(),
        )

        if not self.group_repo.add_item(item, owner_id):
            target.unlink(missing_ok=True)
            logger.warning(f"Upload rejected: group {group_id} is not open [user_id={owner_id}]")
            raise InvalidGroupError(f"Invalid file group {group_id}")

        logger.info(f"Stored {realname} ({size} bytes) in group {group_id} [user_id={owner_id}]")
        return item
