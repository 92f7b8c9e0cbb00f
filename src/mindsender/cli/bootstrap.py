# src/mindsender/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (stores/LLM/assistant),
- persists per-user assistant histories as JSON (optional).
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
from pathlib import Path

from ..accounts.profile_store import ProfileStore
from ..assistant.assistant import Assistant
from ..config import ConfigError, get_settings
from ..core.ports import ChatMessage, LLMClient
from ..core.state import AppState
from ..llm.client import OpenAICompatibleClient
from ..llm.offline import OfflineLLMClient
from ..social.social_store import SocialStore
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)

_HISTORY_MAX_MESSAGES = 40


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.dialog_history_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None, llm: LLMClient | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    llm_configured = True
    if llm is None:
        try:
            llm = OpenAICompatibleClient(settings)
        except ConfigError as e:
            # The console still works; the assistant answers with a "not configured" notice.
            logger.warning("Assistant disabled: %s", e)
            llm = OfflineLLMClient(reason=str(e))
            llm_configured = False

    reminder = settings.reminder_settings()
    profiles = ProfileStore(settings.db_path)

    return AppState(
        settings=settings,
        profiles=profiles,
        tasks=TaskStore(settings.db_path),
        social=SocialStore(settings.db_path, profiles),
        assistant=Assistant(llm, tz=reminder.tzinfo()),
        llm_configured=llm_configured,
    )


def load_dialog_histories(state: AppState) -> dict[str, list[ChatMessage]]:
    if not getattr(state.settings, "save_history", False):
        return {}
    raw_path = getattr(state.settings, "dialog_history_path", None)
    if not raw_path:
        return {}
    path = Path(raw_path)
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text("utf-8"))
        if not isinstance(data, dict):
            return {}
        out: dict[str, list[ChatMessage]] = {}
        for key, msgs in data.items():
            if not isinstance(key, str) or not isinstance(msgs, list):
                continue
            clean: list[ChatMessage] = []
            for m in msgs:
                if isinstance(m, dict) and m.get("role") in ("user", "assistant"):
                    clean.append({"role": m["role"], "content": str(m.get("content", ""))})
            if clean:
                out[key] = clean[-_HISTORY_MAX_MESSAGES:]
        logger.info("Loaded assistant histories: %d users from %s", len(out), path)
        return out
    except Exception:
        logger.exception("Failed to load assistant histories from %s", path)
        return {}


def save_dialog_histories(state: AppState) -> None:
    if not getattr(state.settings, "save_history", False):
        return
    raw_path = getattr(state.settings, "dialog_history_path", None)
    if not raw_path:
        return
    path = Path(raw_path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        trimmed = {k: v[-_HISTORY_MAX_MESSAGES:] for k, v in state.dialog_histories.items() if v}
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(trimmed, ensure_ascii=False, indent=2), "utf-8")
        os.replace(tmp, path)
        with contextlib.suppress(Exception):
            os.chmod(path, 0o600)
        logger.info("Saved assistant histories: %d users to %s", len(trimmed), path)
    except Exception:
        logger.exception("Failed to save assistant histories to %s", path)
