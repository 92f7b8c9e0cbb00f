# src/mindsender/core/state.py

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from ..accounts.profile_models import Profile
from ..accounts.profile_store import ProfileStore
from ..assistant.assistant import Assistant
from ..social.social_store import SocialStore
from ..tasks.task_store import ScopedTaskStore, TaskStore
from .ports import ChatMessage


@dataclass
class AppState:
    """
    Composition root shared by the console front-end and its commands.

    `tasks` is the unscoped store; anything acting for the signed-in user
    must go through `user_tasks()`, which is bound to that user.
    """

    settings: Any
    profiles: ProfileStore
    tasks: TaskStore
    social: SocialStore
    assistant: Assistant
    llm_configured: bool

    current_user: Profile | None = None
    last_seen_message_id: int = 0
    unsubscribe_feed: Callable[[], None] | None = None
    dialog_histories: dict[str, list[ChatMessage]] = field(default_factory=dict)
    lock: threading.Lock = field(default_factory=threading.Lock)

    def require_user(self) -> Profile:
        if self.current_user is None:
            raise PermissionError("Not signed in. Use /login <email> or /register <email> [name].")
        return self.current_user

    def user_tasks(self) -> ScopedTaskStore:
        return self.tasks.for_owner(self.require_user().id)

    def refresh_current_user(self) -> None:
        if self.current_user is not None:
            self.current_user = self.profiles.get_profile(self.current_user.id)

    def history_for(self, user_id: str) -> list[ChatMessage]:
        return self.dialog_histories.setdefault(user_id, [])
