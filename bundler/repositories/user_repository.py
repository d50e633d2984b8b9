"""User repository for database operations."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from common.logging_config import get_logger
from bundler.database import get_db_connection
from bundler.utils import from_iso, to_iso

logger = get_logger(__name__)

_USER_COLUMNS = "user_id, username, password_hash, api_key, api_key_expires_at, created_at"


@dataclass
class User:
    user_id: str
    username: str
    password_hash: str
    api_key: Optional[str]
    api_key_expires_at: Optional[datetime]
    created_at: datetime


def _row_to_user(row) -> User:
    return User(
        user_id=row["user_id"],
        username=row["username"],
        password_hash=row["password_hash"],
        api_key=row["api_key"],
        api_key_expires_at=from_iso(row["api_key_expires_at"]),
        created_at=from_iso(row["created_at"]),
    )


class UserRepository:
    @staticmethod
    def create_user(
        user_id: str,
        username: str,
        password_hash: str,
        api_key: str,
        api_key_expires_at: datetime,
        created_at: datetime,
    ) -> User:
        logger.debug(f"Creating user: {username} [user_id={user_id}]")

        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"INSERT INTO users ({_USER_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                (user_id, username, password_hash, api_key,
                 to_iso(api_key_expires_at), to_iso(created_at))
            )
            conn.commit()

        logger.info(f"User created successfully: {username} [user_id={user_id}]")
        return User(
            user_id=user_id,
            username=username,
            password_hash=password_hash,
            api_key=api_key,
            api_key_expires_at=api_key_expires_at,
            created_at=created_at,
        )

    @staticmethod
    def get_by_username(username: str) -> Optional[User]:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE username = ?", (username,))
            row = cursor.fetchone()

        if row is None:
            logger.debug(f"User not found: {username}")
            return None
        return _row_to_user(row)

    @staticmethod
    def get_by_user_id(user_id: str) -> Optional[User]:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE user_id = ?", (user_id,))
            row = cursor.fetchone()

        return _row_to_user(row) if row else None

    @staticmethod
    def get_by_api_key(api_key: str) -> Optional[User]:
        logger.debug("Fetching user by API key")
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE api_key = ?", (api_key,))
            row = cursor.fetchone()

        return _row_to_user(row) if row else None

    @staticmethod
    def update_api_key(user_id: str, api_key: str, api_key_expires_at: datetime) -> None:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE users SET api_key = ?, api_key_expires_at = ? WHERE user_id = ?",
                (api_key, to_iso(api_key_expires_at), user_id)
            )
            conn.commit()
        logger.debug(f"API key rotated [user_id={user_id}]")
