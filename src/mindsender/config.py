# src/mindsender/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time.
- Each subsystem checks its own requirements (require_mail / require_llm)
  and fails with ConfigError when something is missing.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

ENV_PREFIX = "MINDSENDER"


class ConfigError(RuntimeError):
    """Required configuration is missing or invalid."""


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    parts = [p.strip() for p in raw.replace(",", " ").split() if p.strip()]
    return parts


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class ReminderSettings:
    """
    Reminder job policy.

    The window [now + offset_low, now + offset_high] is scanned every `cadence`.
    A window at least as wide as the cadence means consecutive invocations
    leave no gap, so every due instant falls into some invocation's window.
    """

    offset_low: timedelta
    offset_high: timedelta
    cadence: timedelta
    send_delay_seconds: float
    display_timezone: str
    app_url: str
    from_address: str
    from_name: str

    @property
    def width(self) -> timedelta:
        return self.offset_high - self.offset_low

    def tzinfo(self) -> ZoneInfo:
        try:
            return ZoneInfo(self.display_timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigError(f"Unknown display timezone: {self.display_timezone!r}") from e

    def validate(self) -> ReminderSettings:
        if self.offset_low < timedelta(0):
            raise ConfigError("Reminder offset_low must not be negative.")
        if self.offset_low >= self.offset_high:
            raise ConfigError(
                f"Reminder window is empty: offset_low={self.offset_low} >= offset_high={self.offset_high}."
            )
        if self.cadence <= timedelta(0):
            raise ConfigError("Reminder cadence must be positive.")
        if self.width < self.cadence:
            raise ConfigError(
                f"Reminder window width {self.width} is shorter than the scheduler cadence "
                f"{self.cadence}; tasks due between windows would never be reminded."
            )
        if self.send_delay_seconds < 0:
            raise ConfigError("Reminder send delay must not be negative.")
        self.tzinfo()
        return self


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    app_url: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path
    dialog_history_path: Path
    save_history: bool

    # ---- LLM (OpenAI-compatible, Groq by default) ----
    llm_api_key: Optional[str]
    llm_base_url: str
    llm_models: List[str]

    # ---- Mail ----
    mail_backend: str
    smtp_host: str
    smtp_port: int
    smtp_user: Optional[str]
    smtp_password: Optional[str]
    smtp_starttls: bool
    mail_from_address: Optional[str]
    mail_from_name: str

    # ---- Reminders ----
    reminder_offset_low_minutes: float
    reminder_offset_high_minutes: float
    reminder_cadence_minutes: float
    reminder_send_delay_seconds: float
    display_timezone: str

    # ---- Accounts ----
    admin_emails: List[str] = field(default_factory=list)

    @staticmethod
    def from_env() -> "Settings":
        app_name = _first_env(_k("APP_NAME"), default="MindSender") or "MindSender"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        app_url = _env(_k("APP_URL"), "http://localhost:5173")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/mindsender"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "mindsender.sqlite3")
        dialog_history_path = _env_path(_k("DIALOG_HISTORY_PATH"), data_dir / "assistant_histories.json")
        save_history = _env_bool(_k("SAVE_HISTORY"), True)

        llm_api_key = _first_env(_k("LLM_API_KEY"), "GROQ_API_KEY", default=None)
        llm_base_url = _env(_k("LLM_BASE_URL"), "https://api.groq.com/openai/v1")
        llm_models = _env_list(
            _k("LLM_MODELS"),
            [
                "llama-3.1-8b-instant",
                "llama-3.3-70b-versatile",
            ],
        )

        mail_backend = _env(_k("MAIL_BACKEND"), "smtp").strip().lower() or "smtp"
        smtp_host = _env(_k("SMTP_HOST"), "smtp.gmail.com")
        smtp_port = _env_int(_k("SMTP_PORT"), 587)
        smtp_user = _first_env(_k("SMTP_USER"), "SMTP_USER", default=None)
        smtp_password = _first_env(_k("SMTP_PASSWORD"), "SMTP_PASS", default=None)
        smtp_starttls = _env_bool(_k("SMTP_STARTTLS"), True)
        mail_from_address = _first_env(_k("MAIL_FROM"), default=smtp_user)
        mail_from_name = _env(_k("MAIL_FROM_NAME"), "MindSender AI")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            app_url=app_url,
            data_dir=data_dir,
            db_path=db_path,
            dialog_history_path=dialog_history_path,
            save_history=save_history,
            llm_api_key=llm_api_key,
            llm_base_url=llm_base_url,
            llm_models=llm_models,
            mail_backend=mail_backend,
            smtp_host=smtp_host,
            smtp_port=smtp_port,
            smtp_user=smtp_user,
            smtp_password=smtp_password,
            smtp_starttls=smtp_starttls,
            mail_from_address=mail_from_address,
            mail_from_name=mail_from_name,
            reminder_offset_low_minutes=_env_float(_k("REMINDER_OFFSET_LOW_MINUTES"), 120.0),
            reminder_offset_high_minutes=_env_float(_k("REMINDER_OFFSET_HIGH_MINUTES"), 210.0),
            reminder_cadence_minutes=_env_float(_k("REMINDER_CADENCE_MINUTES"), 60.0),
            reminder_send_delay_seconds=_env_float(_k("REMINDER_SEND_DELAY_SECONDS"), 1.0),
            display_timezone=_env(_k("DISPLAY_TIMEZONE"), "America/Mexico_City"),
            admin_emails=[e.lower() for e in _env_list(_k("ADMIN_EMAILS"), [])],
        )

    def require_llm(self) -> None:
        if not self.llm_api_key or not self.llm_api_key.strip():
            raise ConfigError("LLM API key is not set. Set MINDSENDER_LLM_API_KEY in your .env.")
        if not self.llm_base_url.strip():
            raise ConfigError("LLM base URL is not set. Set MINDSENDER_LLM_BASE_URL in your .env.")
        if not self.llm_models:
            raise ConfigError("LLM model list is empty. Set MINDSENDER_LLM_MODELS in your .env.")

    def require_mail(self) -> None:
        if self.mail_backend == "console":
            return
        if self.mail_backend != "smtp":
            raise ConfigError(f"Unknown mail backend: {self.mail_backend!r} (expected smtp or console).")
        missing = [
            name
            for name, value in (
                ("MINDSENDER_SMTP_HOST", self.smtp_host),
                ("MINDSENDER_SMTP_USER", self.smtp_user),
                ("MINDSENDER_SMTP_PASSWORD", self.smtp_password),
            )
            if not value or not str(value).strip()
        ]
        if missing:
            raise ConfigError(f"Mail transport is not configured. Missing: {', '.join(missing)}.")

    def reminder_settings(self) -> ReminderSettings:
        return ReminderSettings(
            offset_low=timedelta(minutes=self.reminder_offset_low_minutes),
            offset_high=timedelta(minutes=self.reminder_offset_high_minutes),
            cadence=timedelta(minutes=self.reminder_cadence_minutes),
            send_delay_seconds=self.reminder_send_delay_seconds,
            display_timezone=self.display_timezone,
            app_url=self.app_url,
            from_address=self.mail_from_address or "",
            from_name=self.mail_from_name,
        ).validate()


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
