# src/mindsender/cli/reminders.py

"""
Reminder job entrypoint (no arguments; meant for cron / a systemd timer).

Exit codes:
- 0: cycle completed (individual send failures are only logged)
- 1: cycle aborted (store could not be opened or queried)
- 2: configuration error
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3

from ..accounts.profile_store import ProfileStore
from ..config import ConfigError, Settings, get_settings
from ..logging_setup import console_level_from_name, setup_logging
from ..reminders.mailer import build_mail_transport
from ..reminders.reminder_job import ReminderJobError, run_reminder_cycle
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def run_once(settings: Settings) -> int:
    try:
        config = settings.reminder_settings()
        if not config.from_address:
            raise ConfigError("Sender address is not set. Set MINDSENDER_MAIL_FROM or MINDSENDER_SMTP_USER.")
        mailer = build_mail_transport(settings)
    except ConfigError as e:
        logger.error("Reminder job not started: %s", e)
        return 2

    try:
        tasks = TaskStore(settings.db_path)
        profiles = ProfileStore(settings.db_path)
    except (OSError, sqlite3.Error):
        logger.exception("Reminder cycle aborted: opening the store failed db=%s", settings.db_path)
        return 1

    try:
        result = asyncio.run(
            run_reminder_cycle(
                config=config,
                tasks=tasks,
                profiles=profiles,
                mailer=mailer,
                app_name=settings.app_name,
            )
        )
    except ReminderJobError as e:
        logger.error("Reminder cycle aborted: %s", e)
        return 1

    if result.failed or result.mark_failed:
        logger.warning(
            "Reminder cycle finished with problems: failed=%s mark_failed=%s",
            result.failed,
            result.mark_failed,
        )
    return 0


def main() -> int:
    settings = get_settings()
    setup_logging(
        log_dir=settings.data_dir,
        log_file_name="reminders.log",
        console_level=console_level_from_name(settings.log_level),
    )
    return run_once(settings)


if __name__ == "__main__":
    raise SystemExit(main())
