"""Recipient key directory: user id to registered public encryption key."""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

from common.logging_config import get_logger
from bundler.database import get_db_connection
from bundler.utils import from_iso, to_iso

logger = get_logger(__name__)


@dataclass(frozen=True)
class UserKey:
    user_id: str
    public_key: str
    updated_at: Optional[datetime] = None


class UserKeyRepository:
    @staticmethod
    def upsert_key(user_id: str, public_key: str, now: datetime) -> UserKey:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO user_keys (user_id, public_key, created_at, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    public_key = excluded.public_key,
                    updated_at = excluded.updated_at
                """,
                (user_id, public_key, to_iso(now), to_iso(now))
            )
            conn.commit()

        logger.info(f"Public key registered [user_id={user_id}]")
        return UserKey(user_id=user_id, public_key=public_key, updated_at=now)

    @staticmethod
    def get_key(user_id: str) -> Optional[UserKey]:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT user_id, public_key, updated_at FROM user_keys WHERE user_id = ?",
                (user_id,)
            )
            row = cursor.fetchone()

        if row is None:
            return None
        return UserKey(user_id=row["user_id"], public_key=row["public_key"],
                       updated_at=from_iso(row["updated_at"]))

    @staticmethod
    def resolve_public_keys(user_ids: Iterable[str]) -> List[UserKey]:
        """
        Resolve the registered public keys of the given users.

        Duplicate ids are collapsed; users without a key are absent from the
        result. Order follows the first occurrence in ``user_ids``.
        """
        unique_ids = list(dict.fromkeys(user_ids))
        if not unique_ids:
            return []

        with get_db_connection() as conn:
            cursor = conn.cursor()
            placeholders = ','.join('?' for _ in unique_ids)
            cursor.execute(
                f"SELECT user_id, public_key, updated_at FROM user_keys WHERE user_id IN ({placeholders})",
                unique_ids
            )
            rows = {row["user_id"]: row for row in cursor.fetchall()}

        return [
            UserKey(user_id=uid, public_key=rows[uid]["public_key"],
                    updated_at=from_iso(rows[uid]["updated_at"]))
            for uid in unique_ids
            if uid in rows
        ]
