# src/mindsender/tasks/task_store.py

from __future__ import annotations

import logging
import sqlite3
import time
from datetime import datetime
from pathlib import Path
from typing import Any

from ..storage.sqlite import connect, ensure_schema, from_ts, new_id, to_ts
from .task_models import Task

logger = logging.getLogger(__name__)

_UNSET: Any = object()


def _row_to_task(row: sqlite3.Row) -> Task:
    return Task(
        id=str(row["id"]),
        owner_id=str(row["owner_id"]),
        subject=str(row["subject"] or ""),
        description=str(row["description"] or ""),
        due_at=from_ts(row["due_at"]),
        is_completed=bool(row["is_completed"]),
        reminder_sent=bool(row["reminder_sent"]),
        created_at=from_ts(row["created_at"]),
        updated_at=from_ts(row["updated_at"]),
    )


class TaskStore:
    """
    SQLite task store with administrative (unscoped) capability.

    Acts on every user's tasks. Used by the reminder job and admin statistics.
    UI/assistant code must go through `for_owner()` which returns a client
    bound to one owner.
    """

    def __init__(self, db_path: str | Path = "mindsender.sqlite3") -> None:
        self._db_path = Path(db_path)
        ensure_schema(self._db_path)
        try:
            total = self.count_tasks()
        except Exception:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    @property
    def db_path(self) -> Path:
        return self._db_path

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    def _get_conn(self) -> sqlite3.Connection:
        return connect(self._db_path)

    def for_owner(self, owner_id: str) -> ScopedTaskStore:
        return ScopedTaskStore(self, owner_id)

    # ---- admin API ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)
        finally:
            conn.close()

    def count_completed(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks WHERE is_completed = 1").fetchone()
            return int(n)
        finally:
            conn.close()

    def get_task(self, task_id: str) -> Task | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (str(task_id),)).fetchone()
            return _row_to_task(row) if row else None
        finally:
            conn.close()

    def list_reminder_candidates(self, window_start: datetime, window_end: datetime) -> list[Task]:
        """
        Tasks not yet reminded whose due time falls in [window_start, window_end] (inclusive).
        """
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                SELECT *
                FROM tasks
                WHERE reminder_sent = 0
                  AND due_at >= ?
                  AND due_at <= ?
                ORDER BY due_at ASC, created_at ASC
                """,
                (to_ts(window_start), to_ts(window_end)),
            )
            return [_row_to_task(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def mark_reminder_sent(self, task_id: str) -> bool:
        """
        Atomically transitions reminder_sent 0 -> 1.

        Returns False when no row changed: the task was already marked
        (another run got there first) or deleted meanwhile.
        """
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                UPDATE tasks
                SET reminder_sent = 1, updated_at = ?
                WHERE id = ?
                  AND reminder_sent = 0
                """,
                (time.time(), str(task_id)),
            )
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    # ---- owner-scoped primitives (used via ScopedTaskStore) ----

    def _insert_task(self, owner_id: str, subject: str, description: str, due_at: datetime) -> Task:
        subject = (subject or "").strip()
        if not subject:
            raise ValueError("subject is required")
        if not owner_id:
            raise ValueError("owner_id is required")

        due_ts = to_ts(due_at)
        now = time.time()
        task_id = new_id()

        conn = self._get_conn()
        try:
            try:
                conn.execute(
                    """
                    INSERT INTO tasks(
                        id, owner_id, subject, description, due_at,
                        is_completed, reminder_sent, created_at, updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, 0, 0, ?, ?)
                    """,
                    (task_id, owner_id, subject, (description or "").strip(), due_ts, now, now),
                )
            except sqlite3.IntegrityError as e:
                raise ValueError(f"unknown owner: {owner_id}") from e
            conn.commit()
        finally:
            conn.close()

        logger.debug("Task added id=%s owner=%s due_at=%s", task_id, owner_id, due_at.isoformat())
        task = self.get_task(task_id)
        if task is None:
            raise RuntimeError(f"Task {task_id} vanished right after insert")
        return task

    def _list_tasks(self, owner_id: str) -> list[Task]:
        conn = self._get_conn()
        try:
            cur = conn.execute(
                "SELECT * FROM tasks WHERE owner_id = ? ORDER BY due_at ASC, created_at ASC",
                (owner_id,),
            )
            return [_row_to_task(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def _get_owned(self, owner_id: str, task_id: str) -> Task | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM tasks WHERE id = ? AND owner_id = ?",
                (str(task_id), owner_id),
            ).fetchone()
            return _row_to_task(row) if row else None
        finally:
            conn.close()

    def _update_task(
        self,
        owner_id: str,
        task_id: str,
        *,
        subject: Any = _UNSET,
        description: Any = _UNSET,
        due_at: Any = _UNSET,
        is_completed: Any = _UNSET,
    ) -> bool:
        fields: list[str] = []
        params: list[Any] = []

        if subject is not _UNSET and subject is not None:
            s = str(subject).strip()
            if not s:
                raise ValueError("subject must not be empty")
            fields.append("subject = ?")
            params.append(s)

        if description is not _UNSET and description is not None:
            fields.append("description = ?")
            params.append(str(description).strip())

        if due_at is not _UNSET and due_at is not None:
            fields.append("due_at = ?")
            params.append(to_ts(due_at))
            # New due time -> new reminder cycle.
            fields.append("reminder_sent = 0")

        if is_completed is not _UNSET and is_completed is not None:
            fields.append("is_completed = ?")
            params.append(1 if bool(is_completed) else 0)

        if not fields:
            return self._get_owned(owner_id, task_id) is not None

        fields.append("updated_at = ?")
        params.append(time.time())
        params.extend([str(task_id), owner_id])

        sql = f"UPDATE tasks SET {', '.join(fields)} WHERE id = ? AND owner_id = ?"

        conn = self._get_conn()
        try:
            cur = conn.execute(sql, params)
            conn.commit()
            changed = cur.rowcount == 1
        finally:
            conn.close()

        if not changed:
            logger.debug("update_task matched no row id=%s owner=%s", task_id, owner_id)
        return changed

    def _toggle_completed(self, owner_id: str, task_id: str) -> bool:
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                UPDATE tasks
                SET is_completed = 1 - is_completed, updated_at = ?
                WHERE id = ? AND owner_id = ?
                """,
                (time.time(), str(task_id), owner_id),
            )
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    def _delete_task(self, owner_id: str, task_id: str) -> bool:
        conn = self._get_conn()
        try:
            cur = conn.execute(
                "DELETE FROM tasks WHERE id = ? AND owner_id = ?",
                (str(task_id), owner_id),
            )
            conn.commit()
            deleted = cur.rowcount == 1
        finally:
            conn.close()

        if deleted:
            logger.debug("Task deleted id=%s owner=%s", task_id, owner_id)
        return deleted


class ScopedTaskStore:
    """
    Task client bound to a single owner (row-level authorization).

    Writes that target another user's task (or a missing id) affect zero rows
    and return False instead of raising.
    """

    def __init__(self, store: TaskStore, owner_id: str) -> None:
        if not owner_id:
            raise ValueError("owner_id is required")
        self._store = store
        self.owner_id = owner_id

    def create_task(self, subject: str, description: str, due_at: datetime) -> Task:
        return self._store._insert_task(self.owner_id, subject, description, due_at)

    def list_tasks(self) -> list[Task]:
        return self._store._list_tasks(self.owner_id)

    def get_task(self, task_id: str) -> Task | None:
        return self._store._get_owned(self.owner_id, task_id)

    def update_task(
        self,
        task_id: str,
        *,
        subject: str | None = None,
        description: str | None = None,
        due_at: datetime | None = None,
        is_completed: bool | None = None,
    ) -> bool:
        return self._store._update_task(
            self.owner_id,
            task_id,
            subject=subject,
            description=description,
            due_at=due_at,
            is_completed=is_completed,
        )

    def toggle_completed(self, task_id: str) -> bool:
        return self._store._toggle_completed(self.owner_id, task_id)

    def delete_task(self, task_id: str) -> bool:
        return self._store._delete_task(self.owner_id, task_id)
