# src/mindsender/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass(slots=True, frozen=True)
class Task:
    """
    A to-do item owned by one user.

    Notes:
    - due_at is always timezone-aware (UTC when read back from the store).
    - reminder_sent is flipped false -> true by the reminder job only;
      rescheduling a task (new due_at) starts a new reminder cycle.
    """

    id: str
    owner_id: str
    subject: str
    description: str
    due_at: datetime
    is_completed: bool
    reminder_sent: bool
    created_at: datetime
    updated_at: datetime

    def to_public_dict(self) -> dict[str, Any]:
        """Shape handed to the assistant model (list_tasks tool result)."""
        return {
            "id": self.id,
            "subject": self.subject,
            "description": self.description,
            "due_date": self.due_at.isoformat(),
            "is_completed": self.is_completed,
        }
