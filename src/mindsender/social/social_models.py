# src/mindsender/social/social_models.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from ..accounts.profile_models import Profile


class FriendRequestStatus(StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"

    @classmethod
    def from_db(cls, raw: str | None) -> FriendRequestStatus:
        if not raw:
            return cls.PENDING
        try:
            return cls(raw)
        except ValueError:
            return cls.PENDING


@dataclass(slots=True, frozen=True)
class FriendRequest:
    id: str
    sender_id: str
    receiver_id: str
    status: FriendRequestStatus
    created_at: datetime
    updated_at: datetime

    def other_party(self, user_id: str) -> str:
        return self.receiver_id if self.sender_id == user_id else self.sender_id


@dataclass(slots=True, frozen=True)
class IncomingRequest:
    """Pending request joined with the sender's profile (None if it vanished)."""

    request: FriendRequest
    sender: Profile | None


@dataclass(slots=True, frozen=True)
class FriendRequestResult:
    ok: bool
    message: str
    request: FriendRequest | None = None


@dataclass(slots=True, frozen=True)
class DirectMessage:
    id: int
    sender_id: str
    receiver_id: str
    content: str
    created_at: datetime
    is_read: bool
