"""Database schema and connection management for SQLite."""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from bundler.config import DATABASE_PATH


def init_database() -> None:
    """
    Initialize database and create tables if they don't exist.
    """
    db_path = Path(DATABASE_PATH)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_db_connection() as conn:
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS users (
                user_id TEXT PRIMARY KEY,
                username TEXT UNIQUE NOT NULL,
                password_hash TEXT NOT NULL,
                api_key TEXT UNIQUE,
                api_key_expires_at TEXT,
                created_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS user_keys (
                user_id TEXT PRIMARY KEY,
                public_key TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                FOREIGN KEY(user_id) REFERENCES users(user_id)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS file_groups (
                group_id TEXT PRIMARY KEY,
                owner_id TEXT NOT NULL,
                bundled_at TEXT,
                expired_at TEXT,
                archive_passcode TEXT,
                file_key TEXT,
                shared_to_user_ids TEXT NOT NULL DEFAULT '[]',
                claim_token TEXT,
                claimed_at TEXT,
                created_at TEXT NOT NULL,
                FOREIGN KEY(owner_id) REFERENCES users(user_id)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS file_items (
                item_id TEXT PRIMARY KEY,
                group_id TEXT NOT NULL,
                filename TEXT NOT NULL,
                realname TEXT NOT NULL,
                size INTEGER NOT NULL,
                created_at TEXT NOT NULL,
                FOREIGN KEY(group_id) REFERENCES file_groups(group_id) ON DELETE CASCADE
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS short_links (
                code TEXT PRIMARY KEY,
                group_id TEXT UNIQUE NOT NULL,
                pin_hash TEXT,
                created_at TEXT NOT NULL,
                FOREIGN KEY(group_id) REFERENCES file_groups(group_id) ON DELETE CASCADE
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_file_groups_owner ON file_groups(owner_id)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_file_items_group ON file_items(group_id)
        """)

        conn.commit()


@contextmanager
def get_db_connection() -> Generator[sqlite3.Connection, None, None]:
    """
    Context manager for database connections.
    """
    conn = sqlite3.connect(DATABASE_PATH, timeout=30)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()
