# src/mindsender/core/ports.py

"""
Ports (interfaces) used by the core.

The reminder job and the assistant depend on Protocols instead of concrete
implementations, so the store, the mail transport and the LLM provider stay
swappable and easy to fake in tests.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

ChatMessage = dict[str, Any]
# OpenAI-style chat messages: {"role": "...", "content": "...", ["tool_calls"|"tool_call_id"]: ...}.


@dataclass(slots=True, frozen=True)
class ToolCall:
    id: str
    name: str
    arguments: str  # raw JSON text as produced by the model


@dataclass(slots=True, frozen=True)
class Completion:
    content: str | None
    tool_calls: list[ToolCall] = field(default_factory=list)
    model: str | None = None


class LLMClient(Protocol):
    """Chat completion client (OpenAI/Groq-compatible) with optional tool schema."""

    def complete(
            self,
            messages: list[ChatMessage],
            *,
            tools: list[dict[str, Any]] | None = None,
    ) -> Completion: ...


@dataclass(slots=True, frozen=True)
class OutgoingEmail:
    from_address: str
    from_name: str
    to_address: str
    subject: str
    html: str
    text: str


class MailTransport(Protocol):
    """Delivers one e-mail; raises on failure."""

    async def send(self, email: OutgoingEmail) -> None: ...


class ReminderTaskRepo(Protocol):
    """Unscoped task access needed by the reminder job."""

    def list_reminder_candidates(self, window_start: datetime, window_end: datetime) -> list[Any]: ...
    def mark_reminder_sent(self, task_id: str) -> bool: ...


class ProfileDirectory(Protocol):
    def get_profiles(self, profile_ids: Iterable[str]) -> dict[str, Any]: ...
