# tests/conftest.py

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import pytest

from mindsender.accounts.profile_store import ProfileStore
from mindsender.assistant.assistant import Assistant
from mindsender.config import Settings
from mindsender.core.state import AppState
from mindsender.social.social_store import SocialStore
from mindsender.tasks.task_store import TaskStore

from .fakes import FakeLLMClient

NOW = datetime(2026, 10, 16, 10, 0, tzinfo=UTC)


def make_settings(tmp_path: Path, **overrides) -> Settings:
    """
    Explicit Settings for tests.

    Built field by field instead of Settings.from_env() so the developer's
    environment / .env never leaks into unit tests.
    """
    values = dict(
        app_name="MindSender",
        log_level="DEBUG",
        app_url="https://mindsender.test",
        data_dir=tmp_path,
        db_path=tmp_path / "mindsender.sqlite3",
        dialog_history_path=tmp_path / "assistant_histories.json",
        save_history=True,
        llm_api_key=None,
        llm_base_url="https://api.groq.com/openai/v1",
        llm_models=["llama-3.1-8b-instant"],
        mail_backend="console",
        smtp_host="smtp.test",
        smtp_port=587,
        smtp_user=None,
        smtp_password=None,
        smtp_starttls=True,
        mail_from_address="reminders@mindsender.test",
        mail_from_name="MindSender AI",
        reminder_offset_low_minutes=120.0,
        reminder_offset_high_minutes=210.0,
        reminder_cadence_minutes=60.0,
        reminder_send_delay_seconds=1.0,
        display_timezone="UTC",
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture()
def profiles(settings: Settings) -> ProfileStore:
    return ProfileStore(settings.db_path)


@pytest.fixture()
def task_store(settings: Settings) -> TaskStore:
    return TaskStore(settings.db_path)


@pytest.fixture()
def social(settings: Settings, profiles: ProfileStore) -> SocialStore:
    return SocialStore(settings.db_path, profiles)


@pytest.fixture()
def fake_llm() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture()
def state(
    settings: Settings,
    profiles: ProfileStore,
    task_store: TaskStore,
    social: SocialStore,
    fake_llm: FakeLLMClient,
) -> AppState:
    """
    AppState wired with a fake LLM.

    NOTE: We keep real SQLite stores here because their correctness is part
    of what we want to test.
    """
    return AppState(
        settings=settings,
        profiles=profiles,
        tasks=task_store,
        social=social,
        assistant=Assistant(fake_llm, tz=UTC),
        llm_configured=True,
    )
