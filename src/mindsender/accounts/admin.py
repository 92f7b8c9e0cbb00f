# src/mindsender/accounts/admin.py

from __future__ import annotations

from dataclasses import dataclass

from ..tasks.task_store import TaskStore
from .profile_store import ProfileStore


@dataclass(slots=True, frozen=True)
class AdminStats:
    total_users: int
    total_tasks: int
    completed_tasks: int

    @property
    def completion_rate(self) -> float:
        if self.total_tasks <= 0:
            return 0.0
        return self.completed_tasks / self.total_tasks


def admin_stats(profiles: ProfileStore, tasks: TaskStore) -> AdminStats:
    """Dashboard numbers across all users (requires the unscoped TaskStore)."""
    return AdminStats(
        total_users=profiles.count_profiles(),
        total_tasks=tasks.count_tasks(),
        completed_tasks=tasks.count_completed(),
    )
