# src/mindsender/accounts/profile_models.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class Role(StrEnum):
    USER = "user"
    ADMIN = "admin"

    @classmethod
    def from_db(cls, raw: str | None) -> Role:
        if not raw:
            return cls.USER
        try:
            return cls(raw)
        except ValueError:
            return cls.USER


class PlanTier(StrEnum):
    FREE = "free"
    PRO = "pro"
    ELITE = "elite"

    @classmethod
    def from_db(cls, raw: str | None) -> PlanTier:
        if not raw:
            return cls.FREE
        try:
            return cls(raw)
        except ValueError:
            return cls.FREE


@dataclass(slots=True, frozen=True)
class Profile:
    id: str
    email: str
    display_name: str
    role: Role
    plan: PlanTier
    created_at: datetime

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def first_name(self) -> str:
        name = (self.display_name or "").strip()
        return name.split()[0] if name else ""

    def label(self) -> str:
        return f"{self.display_name} <{self.email}>" if self.display_name else self.email
