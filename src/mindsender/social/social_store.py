# src/mindsender/social/social_store.py

from __future__ import annotations

import logging
import sqlite3
import time
from pathlib import Path

from ..accounts.profile_models import Profile
from ..accounts.profile_store import ProfileStore
from ..storage.sqlite import connect, ensure_schema, from_ts, new_id
from .message_feed import MessageFeed
from .social_models import (
    DirectMessage,
    FriendRequest,
    FriendRequestResult,
    FriendRequestStatus,
    IncomingRequest,
)

logger = logging.getLogger(__name__)


def _row_to_request(row: sqlite3.Row) -> FriendRequest:
    return FriendRequest(
        id=str(row["id"]),
        sender_id=str(row["sender_id"]),
        receiver_id=str(row["receiver_id"]),
        status=FriendRequestStatus.from_db(row["status"]),
        created_at=from_ts(row["created_at"]),
        updated_at=from_ts(row["updated_at"]),
    )


def _row_to_message(row: sqlite3.Row) -> DirectMessage:
    return DirectMessage(
        id=int(row["id"]),
        sender_id=str(row["sender_id"]),
        receiver_id=str(row["receiver_id"]),
        content=str(row["content"] or ""),
        created_at=from_ts(row["created_at"]),
        is_read=bool(row["is_read"]),
    )


class SocialStore:
    """
    Friend requests and direct messages.

    One relationship row per unordered pair of users is enforced by a unique
    index, so two concurrent requests (A->B and B->A) cannot both land.
    """

    def __init__(
        self,
        db_path: str | Path,
        profiles: ProfileStore,
        feed: MessageFeed | None = None,
    ) -> None:
        self._db_path = Path(db_path)
        ensure_schema(self._db_path)
        self._profiles = profiles
        self.feed = feed or MessageFeed()

    def close(self) -> None:
        return

    def _get_conn(self) -> sqlite3.Connection:
        return connect(self._db_path)

    # ---- friend requests ----

    def find_relationship(self, user_a: str, user_b: str) -> FriendRequest | None:
        low, high = sorted((user_a, user_b))
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM friend_requests WHERE user_low = ? AND user_high = ?",
                (low, high),
            ).fetchone()
            return _row_to_request(row) if row else None
        finally:
            conn.close()

    def send_friend_request(self, sender_id: str, receiver_email: str) -> FriendRequestResult:
        found = self._profiles.search_by_email(receiver_email)
        if not found:
            return FriendRequestResult(False, "User not found.")

        target = found[0]
        if target.id == sender_id:
            return FriendRequestResult(False, "You cannot send a friend request to yourself.")

        if self.find_relationship(sender_id, target.id) is not None:
            return FriendRequestResult(False, "A request or friendship already exists.")

        low, high = sorted((sender_id, target.id))
        now = time.time()
        req_id = new_id()

        conn = self._get_conn()
        try:
            try:
                conn.execute(
                    """
                    INSERT INTO friend_requests(
                        id, sender_id, receiver_id, user_low, user_high, status, created_at, updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, 'pending', ?, ?)
                    """,
                    (req_id, sender_id, target.id, low, high, now, now),
                )
                conn.commit()
            except sqlite3.IntegrityError:
                # Lost the race against a concurrent request for the same pair,
                # or the sender has no profile.
                conn.rollback()
                if self.find_relationship(sender_id, target.id) is not None:
                    return FriendRequestResult(False, "A request or friendship already exists.")
                raise
        finally:
            conn.close()

        logger.info("Friend request sent id=%s from=%s to=%s", req_id, sender_id, target.id)
        return FriendRequestResult(True, "Request sent.", self.find_relationship(sender_id, target.id))

    def list_incoming_requests(self, user_id: str) -> list[IncomingRequest]:
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                SELECT *
                FROM friend_requests
                WHERE receiver_id = ?
                  AND status = 'pending'
                ORDER BY created_at ASC
                """,
                (user_id,),
            )
            requests = [_row_to_request(r) for r in cur.fetchall()]
        finally:
            conn.close()

        if not requests:
            return []
        senders = self._profiles.get_profiles(r.sender_id for r in requests)
        return [IncomingRequest(request=r, sender=senders.get(r.sender_id)) for r in requests]

    def accept_request(self, request_id: str, user_id: str) -> bool:
        return self._answer_request(request_id, user_id, FriendRequestStatus.ACCEPTED)

    def reject_request(self, request_id: str, user_id: str) -> bool:
        return self._answer_request(request_id, user_id, FriendRequestStatus.REJECTED)

    def _answer_request(self, request_id: str, user_id: str, status: FriendRequestStatus) -> bool:
        """Only the receiver of a still-pending request may answer it."""
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                UPDATE friend_requests
                SET status = ?, updated_at = ?
                WHERE id = ?
                  AND receiver_id = ?
                  AND status = 'pending'
                """,
                (status.value, time.time(), request_id, user_id),
            )
            conn.commit()
            changed = cur.rowcount == 1
        finally:
            conn.close()

        if changed:
            logger.info("Friend request %s -> %s by %s", request_id, status.value, user_id)
        return changed

    def list_friends(self, user_id: str) -> list[Profile]:
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                SELECT *
                FROM friend_requests
                WHERE status = 'accepted'
                  AND (sender_id = ? OR receiver_id = ?)
                """,
                (user_id, user_id),
            )
            friend_ids = [_row_to_request(r).other_party(user_id) for r in cur.fetchall()]
        finally:
            conn.close()

        profiles = self._profiles.get_profiles(friend_ids)
        return sorted(profiles.values(), key=lambda p: (p.display_name.lower(), p.email))

    def are_friends(self, user_a: str, user_b: str) -> bool:
        rel = self.find_relationship(user_a, user_b)
        return rel is not None and rel.status == FriendRequestStatus.ACCEPTED

    # ---- direct messages ----

    def send_message(self, sender_id: str, receiver_id: str, content: str) -> DirectMessage:
        text = (content or "").strip()
        if not text:
            raise ValueError("message content is required")
        if not self.are_friends(sender_id, receiver_id):
            raise PermissionError("direct messages are only allowed between friends")

        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                INSERT INTO direct_messages(sender_id, receiver_id, content, created_at, is_read)
                VALUES (?, ?, ?, ?, 0)
                """,
                (sender_id, receiver_id, text, time.time()),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for direct_messages insert")
            row = conn.execute("SELECT * FROM direct_messages WHERE id = ?", (int(rowid),)).fetchone()
        finally:
            conn.close()

        message = _row_to_message(row)
        logger.debug("DM stored id=%s from=%s to=%s", message.id, sender_id, receiver_id)
        self.feed.publish(message)
        return message

    def list_conversation(self, user_id: str, friend_id: str, limit: int = 200) -> list[DirectMessage]:
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                SELECT *
                FROM (
                    SELECT *
                    FROM direct_messages
                    WHERE (sender_id = ? AND receiver_id = ?)
                       OR (sender_id = ? AND receiver_id = ?)
                    ORDER BY id DESC
                    LIMIT ?
                )
                ORDER BY id ASC
                """,
                (user_id, friend_id, friend_id, user_id, int(limit)),
            )
            return [_row_to_message(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def list_messages_since(self, user_id: str, after_id: int = 0) -> list[DirectMessage]:
        """Polling read: inbound messages with id > after_id, oldest first."""
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                SELECT *
                FROM direct_messages
                WHERE receiver_id = ?
                  AND id > ?
                ORDER BY id ASC
                """,
                (user_id, int(after_id)),
            )
            return [_row_to_message(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def mark_conversation_read(self, user_id: str, friend_id: str) -> int:
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                UPDATE direct_messages
                SET is_read = 1
                WHERE receiver_id = ?
                  AND sender_id = ?
                  AND is_read = 0
                """,
                (user_id, friend_id),
            )
            conn.commit()
            return int(cur.rowcount)
        finally:
            conn.close()
