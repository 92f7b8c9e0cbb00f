# src/mindsender/accounts/profile_store.py

from __future__ import annotations

import logging
import sqlite3
import time
from collections.abc import Iterable
from pathlib import Path

from ..storage.sqlite import connect, ensure_schema, from_ts, new_id
from .profile_models import PlanTier, Profile, Role

logger = logging.getLogger(__name__)


def _row_to_profile(row: sqlite3.Row) -> Profile:
    return Profile(
        id=str(row["id"]),
        email=str(row["email"] or ""),
        display_name=str(row["display_name"] or ""),
        role=Role.from_db(row["role"]),
        plan=PlanTier.from_db(row["plan"]),
        created_at=from_ts(row["created_at"]),
    )


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class ProfileStore:
    """
    SQLite-backed user profiles (one per account).

    Email is unique (case-insensitive) and is the only contact channel used
    by reminders. Profiles are never deleted here.
    """

    def __init__(self, db_path: str | Path = "mindsender.sqlite3") -> None:
        self._db_path = Path(db_path)
        ensure_schema(self._db_path)

    def close(self) -> None:
        return

    def _get_conn(self) -> sqlite3.Connection:
        return connect(self._db_path)

    def create_profile(
        self,
        email: str,
        display_name: str = "",
        *,
        role: Role = Role.USER,
        plan: PlanTier = PlanTier.FREE,
        profile_id: str | None = None,
    ) -> Profile:
        email_n = _normalize_email(email)
        if not email_n or "@" not in email_n:
            raise ValueError(f"invalid email: {email!r}")

        pid = profile_id or new_id()
        now = time.time()

        conn = self._get_conn()
        try:
            try:
                conn.execute(
                    """
                    INSERT INTO profiles(id, email, display_name, role, plan, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (pid, email_n, (display_name or "").strip(), role.value, plan.value, now),
                )
            except sqlite3.IntegrityError as e:
                raise ValueError(f"a profile with email {email_n} already exists") from e
            conn.commit()
        finally:
            conn.close()

        logger.info("Profile created id=%s email=%s", pid, email_n)
        profile = self.get_profile(pid)
        if profile is None:
            raise RuntimeError(f"Profile {pid} vanished right after insert")
        return profile

    def get_profile(self, profile_id: str) -> Profile | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM profiles WHERE id = ?", (profile_id,)).fetchone()
            return _row_to_profile(row) if row else None
        finally:
            conn.close()

    def get_profile_by_email(self, email: str) -> Profile | None:
        email_n = _normalize_email(email)
        if not email_n:
            return None
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM profiles WHERE email = ?", (email_n,)).fetchone()
            return _row_to_profile(row) if row else None
        finally:
            conn.close()

    def get_profiles(self, profile_ids: Iterable[str]) -> dict[str, Profile]:
        """Batch lookup: one query for all ids. Unknown ids are simply absent."""
        ids = sorted({str(i) for i in profile_ids if i})
        if not ids:
            return {}

        placeholders = ",".join("?" for _ in ids)
        conn = self._get_conn()
        try:
            cur = conn.execute(f"SELECT * FROM profiles WHERE id IN ({placeholders})", ids)
            return {p.id: p for p in (_row_to_profile(r) for r in cur.fetchall())}
        finally:
            conn.close()

    def search_by_email(self, term: str) -> list[Profile]:
        p = self.get_profile_by_email(term)
        return [p] if p else []

    def update_display_name(self, profile_id: str, display_name: str) -> bool:
        return self._set_column(profile_id, "display_name", (display_name or "").strip())

    def set_role(self, profile_id: str, role: Role) -> bool:
        changed = self._set_column(profile_id, "role", Role(role).value)
        if changed:
            logger.info("Profile role changed id=%s role=%s", profile_id, role)
        return changed

    def set_plan(self, profile_id: str, plan: PlanTier) -> bool:
        changed = self._set_column(profile_id, "plan", PlanTier(plan).value)
        if changed:
            logger.info("Profile plan changed id=%s plan=%s", profile_id, plan)
        return changed

    def count_profiles(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM profiles").fetchone()
            return int(n)
        finally:
            conn.close()

    def _set_column(self, profile_id: str, column: str, value: str) -> bool:
        conn = self._get_conn()
        try:
            cur = conn.execute(f"UPDATE profiles SET {column} = ? WHERE id = ?", (value, profile_id))
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()
