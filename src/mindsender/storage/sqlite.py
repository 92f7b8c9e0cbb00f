# src/mindsender/storage/sqlite.py

"""
Shared SQLite plumbing for the relational store.

All stores (profiles, tasks, friends/messages) live in one database file.
The schema is migration-safe:
- create tables if missing
- use PRAGMA table_info to detect missing columns
- add columns with ALTER TABLE only when needed

Thread-safety:
- every store method opens its own short-lived connection
"""

from __future__ import annotations

import contextlib
import logging
import sqlite3
import uuid
from datetime import UTC, datetime
from pathlib import Path

logger = logging.getLogger(__name__)

_SCHEMA_READY: set[str] = set()

_TABLES = (
    """
    CREATE TABLE IF NOT EXISTS profiles (
        id TEXT PRIMARY KEY,
        email TEXT NOT NULL COLLATE NOCASE,
        display_name TEXT NOT NULL DEFAULT '',
        role TEXT NOT NULL DEFAULT 'user',
        plan TEXT NOT NULL DEFAULT 'free',
        created_at REAL NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS tasks (
        id TEXT PRIMARY KEY,
        owner_id TEXT NOT NULL REFERENCES profiles(id),
        subject TEXT NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        due_at REAL NOT NULL,
        is_completed INTEGER NOT NULL DEFAULT 0,
        reminder_sent INTEGER NOT NULL DEFAULT 0,
        created_at REAL NOT NULL,
        updated_at REAL NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS friend_requests (
        id TEXT PRIMARY KEY,
        sender_id TEXT NOT NULL REFERENCES profiles(id),
        receiver_id TEXT NOT NULL REFERENCES profiles(id),
        user_low TEXT NOT NULL,
        user_high TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending',
        created_at REAL NOT NULL,
        updated_at REAL NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS direct_messages (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        sender_id TEXT NOT NULL REFERENCES profiles(id),
        receiver_id TEXT NOT NULL REFERENCES profiles(id),
        content TEXT NOT NULL,
        created_at REAL NOT NULL,
        is_read INTEGER NOT NULL DEFAULT 0
    )
    """,
)

# Columns added after the first release; (table, column, declaration).
_MIGRATIONS = (
    ("profiles", "plan", "TEXT NOT NULL DEFAULT 'free'"),
    ("profiles", "role", "TEXT NOT NULL DEFAULT 'user'"),
    ("tasks", "reminder_sent", "INTEGER NOT NULL DEFAULT 0"),
    ("tasks", "is_completed", "INTEGER NOT NULL DEFAULT 0"),
    ("direct_messages", "is_read", "INTEGER NOT NULL DEFAULT 0"),
)

_INDEXES = (
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_profiles_email ON profiles(email)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_reminder ON tasks(reminder_sent, due_at)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_owner_due ON tasks(owner_id, due_at)",
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_friend_requests_pair ON friend_requests(user_low, user_high)",
    "CREATE INDEX IF NOT EXISTS idx_friend_requests_receiver ON friend_requests(receiver_id, status)",
    "CREATE INDEX IF NOT EXISTS idx_dm_receiver ON direct_messages(receiver_id, id)",
)


def new_id() -> str:
    return uuid.uuid4().hex


def to_ts(value: datetime) -> float:
    """Aware datetime -> epoch seconds. Naive datetimes are rejected."""
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        raise ValueError("datetime must be timezone-aware")
    return float(value.timestamp())


def from_ts(ts: float | None) -> datetime:
    return datetime.fromtimestamp(float(ts or 0.0), tz=UTC)


def connect(db_path: str | Path) -> sqlite3.Connection:
    conn = sqlite3.connect(str(db_path), timeout=30.0)
    conn.row_factory = sqlite3.Row
    with contextlib.suppress(Exception):
        conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def ensure_schema(db_path: str | Path) -> None:
    """Create tables/indexes once per process and database file."""
    path = Path(db_path)
    key = str(path.resolve())
    if key in _SCHEMA_READY:
        return

    path.parent.mkdir(parents=True, exist_ok=True)
    conn = connect(path)
    try:
        cur = conn.cursor()
        for ddl in _TABLES:
            cur.execute(ddl)

        for table, column, decl in _MIGRATIONS:
            cur.execute(f"PRAGMA table_info({table})")
            cols = {row["name"] for row in cur.fetchall()}
            if column in cols:
                continue
            cur.execute(f"ALTER TABLE {table} ADD COLUMN {column} {decl}")
            logger.info("Schema migration: added column %s.%s", table, column)

        for ddl in _INDEXES:
            cur.execute(ddl)

        conn.commit()
    finally:
        conn.close()

    _SCHEMA_READY.add(key)
    logger.debug("Schema ready db=%s", path)
