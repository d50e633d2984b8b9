"""File group and file item repository for database operations."""

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from common.logging_config import get_logger
from bundler.database import get_db_connection
from bundler.utils import from_iso, to_iso

logger = get_logger(__name__)

_GROUP_COLUMNS = (
    "group_id, owner_id, bundled_at, expired_at, archive_passcode, file_key, "
    "shared_to_user_ids, claim_token, claimed_at, created_at"
)


@dataclass
class FileGroup:
    group_id: str
    owner_id: str
    created_at: datetime
    bundled_at: Optional[datetime] = None
    expired_at: Optional[datetime] = None
    archive_passcode: Optional[str] = None
    file_key: Optional[str] = None
    shared_to_user_ids: List[str] = field(default_factory=list)
    claim_token: Optional[str] = None
    claimed_at: Optional[datetime] = None


@dataclass(frozen=True)
class FileItem:
    item_id: str
    group_id: str
    filename: str
    realname: str
    size: int
    created_at: datetime


def _row_to_group(row) -> FileGroup:
    return FileGroup(
        group_id=row["group_id"],
        owner_id=row["owner_id"],
        created_at=from_iso(row["created_at"]),
        bundled_at=from_iso(row["bundled_at"]),
        expired_at=from_iso(row["expired_at"]),
        archive_passcode=row["archive_passcode"],
        file_key=row["file_key"],
        shared_to_user_ids=json.loads(row["shared_to_user_ids"] or "[]"),
        claim_token=row["claim_token"],
        claimed_at=from_iso(row["claimed_at"]),
    )


def _row_to_item(row) -> FileItem:
    return FileItem(
        item_id=row["item_id"],
        group_id=row["group_id"],
        filename=row["filename"],
        realname=row["realname"],
        size=row["size"],
        created_at=from_iso(row["created_at"]),
    )


class GroupRepository:
    @staticmethod
    def create_group(group_id: str, owner_id: str, created_at: datetime) -> FileGroup:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "INSERT INTO file_groups (group_id, owner_id, created_at) VALUES (?, ?, ?)",
                (group_id, owner_id, to_iso(created_at))
            )
            conn.commit()

        logger.info(f"File group created [group_id={group_id}] [owner_id={owner_id}]")
        return FileGroup(group_id=group_id, owner_id=owner_id, created_at=created_at)

    @staticmethod
    def get_by_id(group_id: str) -> Optional[FileGroup]:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT {_GROUP_COLUMNS} FROM file_groups WHERE group_id = ?", (group_id,))
            row = cursor.fetchone()

        return _row_to_group(row) if row else None

    @staticmethod
    def get_owned_bundled_group(group_id: str, owner_id: str) -> Optional[FileGroup]:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT {_GROUP_COLUMNS} FROM file_groups
                WHERE group_id = ? AND owner_id = ? AND bundled_at IS NOT NULL
                """,
                (group_id, owner_id)
            )
            row = cursor.fetchone()

        return _row_to_group(row) if row else None

    @staticmethod
    def add_item(item: FileItem, owner_id: str) -> bool:
        """
        Attach an uploaded file to a group that is still open.

        Returns:
            False when the group is missing, owned by someone else,
            bundled, or currently claimed by a bundling request.
        """
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO file_items (item_id, group_id, filename, realname, size, created_at)
                SELECT ?, ?, ?, ?, ?, ?
                WHERE EXISTS (
                    SELECT 1 FROM file_groups
                    WHERE group_id = ? AND owner_id = ?
                    AND bundled_at IS NULL AND claim_token IS NULL
                )
                """,
                (item.item_id, item.group_id, item.filename, item.realname, item.size,
                 to_iso(item.created_at), item.group_id, owner_id)
            )
            conn.commit()
            return cursor.rowcount > 0

    @staticmethod
    def list_members(group_id: str) -> List[FileItem]:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT item_id, group_id, filename, realname, size, created_at
                FROM file_items WHERE group_id = ?
                ORDER BY created_at, item_id
                """,
                (group_id,)
            )
            return [_row_to_item(row) for row in cursor.fetchall()]

    @staticmethod
    def claim_owned_unbundled_group(
        group_id: str,
        owner_id: str,
        claim_token: str,
        now: datetime,
        stale_before: datetime,
    ) -> Optional[FileGroup]:
        """
        Atomically fetch a group owned by ``owner_id`` that is not bundled and
        mark it as being bundled under ``claim_token``.

        A single conditional UPDATE ... RETURNING, so of any number of
        concurrent callers exactly one receives the group. Claims older than
        ``stale_before`` are treated as abandoned and may be taken over.
        """
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                UPDATE file_groups
                SET claim_token = ?, claimed_at = ?
                WHERE group_id = ? AND owner_id = ? AND bundled_at IS NULL
                AND (claim_token IS NULL OR claimed_at < ?)
                RETURNING {_GROUP_COLUMNS}
                """,
                (claim_token, to_iso(now), group_id, owner_id, to_iso(stale_before))
            )
            rows = cursor.fetchall()
            conn.commit()

        row = rows[0] if rows else None
        if row is None:
            logger.debug(f"No claimable group [group_id={group_id}] [owner_id={owner_id}]")
            return None
        return _row_to_group(row)

    @staticmethod
    def release_claim(group_id: str, claim_token: str) -> None:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                UPDATE file_groups SET claim_token = NULL, claimed_at = NULL
                WHERE group_id = ? AND claim_token = ? AND bundled_at IS NULL
                """,
                (group_id, claim_token)
            )
            conn.commit()
        logger.debug(f"Released bundling claim [group_id={group_id}]")

    @staticmethod
    def save_bundled_group(group: FileGroup) -> int:
        """
        Persist the final bundle state in one conditional update.

        Matches only while the caller still holds its claim and the group is
        unbundled; the caller treats 0 affected rows as a conflict.

        Returns:
            Number of rows affected
        """
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                UPDATE file_groups
                SET file_key = ?, archive_passcode = ?, expired_at = ?, bundled_at = ?,
                    shared_to_user_ids = ?, claim_token = NULL, claimed_at = NULL
                WHERE group_id = ? AND claim_token = ? AND bundled_at IS NULL
                """,
                (group.file_key, group.archive_passcode, to_iso(group.expired_at),
                 to_iso(group.bundled_at), json.dumps(group.shared_to_user_ids),
                 group.group_id, group.claim_token)
            )
            conn.commit()
            return cursor.rowcount

    @staticmethod
    def update_file_key(group_id: str, file_key: str) -> int:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE file_groups SET file_key = ? WHERE group_id = ? AND bundled_at IS NOT NULL",
                (file_key, group_id)
            )
            conn.commit()
            return cursor.rowcount
