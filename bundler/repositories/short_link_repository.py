"""Access credential (short link) repository for database operations."""

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from common.logging_config import get_logger
from bundler.database import get_db_connection
from bundler.utils import from_iso, to_iso

logger = get_logger(__name__)


class DuplicateCodeError(Exception):
    """Raised when a freshly generated code is already taken."""
    pass


class DuplicateGroupLinkError(Exception):
    """Raised when the group already owns a short link."""
    pass


@dataclass(frozen=True)
class ShortLink:
    code: str
    group_id: str
    pin_hash: Optional[str]
    created_at: datetime


class ShortLinkRepository:
    @staticmethod
    def create(code: str, group_id: str, pin_hash: Optional[str], created_at: datetime) -> ShortLink:
        """
        Insert a short link.

        Raises:
            DuplicateCodeError: the code collides with an existing link
            DuplicateGroupLinkError: the group already has a link
        """
        with get_db_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(
                    "INSERT INTO short_links (code, group_id, pin_hash, created_at) VALUES (?, ?, ?, ?)",
                    (code, group_id, pin_hash, to_iso(created_at))
                )
                conn.commit()
            except sqlite3.IntegrityError as e:
                conn.rollback()
                if "short_links.group_id" in str(e):
                    raise DuplicateGroupLinkError(group_id) from e
                raise DuplicateCodeError(code) from e

        logger.debug(f"Short link stored [group_id={group_id}]")
        return ShortLink(code=code, group_id=group_id, pin_hash=pin_hash, created_at=created_at)

    @staticmethod
    def get_by_code(code: str) -> Optional[ShortLink]:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT code, group_id, pin_hash, created_at FROM short_links WHERE code = ?",
                (code,)
            )
            row = cursor.fetchone()

        if row is None:
            return None
        return ShortLink(code=row["code"], group_id=row["group_id"], pin_hash=row["pin_hash"],
                         created_at=from_iso(row["created_at"]))

    @staticmethod
    def get_by_group(group_id: str) -> Optional[ShortLink]:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT code, group_id, pin_hash, created_at FROM short_links WHERE group_id = ?",
                (group_id,)
            )
            row = cursor.fetchone()

        if row is None:
            return None
        return ShortLink(code=row["code"], group_id=row["group_id"], pin_hash=row["pin_hash"],
                         created_at=from_iso(row["created_at"]))
