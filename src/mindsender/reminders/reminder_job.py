# src/mindsender/reminders/reminder_job.py

"""
Reminder batch job.

One invocation = one pass:
- compute the look-ahead window [now + offset_low, now + offset_high],
- fetch tasks in the window that were not reminded yet,
- resolve owners' e-mail addresses in one batch lookup,
- send one e-mail per task, sequentially, with a fixed delay between sends,
- mark each delivered task with a conditional update (reminder_sent 0 -> 1).

The job keeps no state between invocations; the reminder_sent flag is the
only bookkeeping. Scheduling (cron, systemd timer, ...) is external.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from ..config import ReminderSettings
from ..core.ports import MailTransport, ProfileDirectory, ReminderTaskRepo
from .templates import render_reminder

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


class ReminderJobError(RuntimeError):
    """The cycle was aborted (store query failed)."""


@dataclass(slots=True)
class ReminderCycleResult:
    window_start: datetime
    window_end: datetime
    candidates: int = 0
    sent: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    already_handled: list[str] = field(default_factory=list)
    mark_failed: list[str] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.sent) + len(self.failed)


async def run_reminder_cycle(
        now: datetime | None = None,
        *,
        config: ReminderSettings,
        tasks: ReminderTaskRepo,
        profiles: ProfileDirectory,
        mailer: MailTransport,
        sleep: SleepFn = asyncio.sleep,
        app_name: str = "MindSender",
) -> ReminderCycleResult:
    """
    Run one reminder cycle and return what happened.

    Raises ReminderJobError when the candidate query or the profile lookup
    fails; nothing is retried within the same invocation.
    """
    if now is None:
        now = datetime.now(UTC)
    if now.tzinfo is None or now.tzinfo.utcoffset(now) is None:
        raise ValueError("now must be timezone-aware")

    window_start = now + config.offset_low
    window_end = now + config.offset_high
    result = ReminderCycleResult(window_start=window_start, window_end=window_end)

    logger.info(
        "Checking for reminders now=%s window=[%s, %s]",
        now.isoformat(),
        window_start.isoformat(),
        window_end.isoformat(),
    )

    try:
        candidates = tasks.list_reminder_candidates(window_start, window_end)
    except Exception as e:
        logger.exception("Fetching reminder candidates failed")
        raise ReminderJobError("Fetching reminder candidates failed") from e

    result.candidates = len(candidates)
    if not candidates:
        logger.info("No reminders to send.")
        return result

    logger.info("Found %d task(s) to remind.", len(candidates))

    owner_ids = {t.owner_id for t in candidates}
    try:
        owners = profiles.get_profiles(owner_ids)
    except Exception as e:
        logger.exception("Fetching owner profiles failed owners=%d", len(owner_ids))
        raise ReminderJobError("Fetching owner profiles failed") from e

    delay = max(0.0, float(config.send_delay_seconds))

    for task in candidates:
        profile = owners.get(task.owner_id)
        if profile is None or not (getattr(profile, "email", "") or "").strip():
            logger.warning("Skipping task %s: owner %s has no profile/e-mail", task.id, task.owner_id)
            result.skipped.append(task.id)
            continue

        if delay:
            await sleep(delay)

        try:
            email = render_reminder(task, profile, config, app_name=app_name)
            await mailer.send(email)
        except Exception:
            logger.exception("Failed to send reminder task_id=%s to=%s", task.id, profile.email)
            result.failed.append(task.id)
            continue

        logger.info("Reminder sent to %s for task %s", profile.email, task.id)
        result.sent.append(task.id)

        try:
            marked = tasks.mark_reminder_sent(task.id)
        except Exception:
            # Delivered but not marked: the next cycle will remind again.
            logger.exception("mark_reminder_sent failed task_id=%s (duplicate reminder possible)", task.id)
            result.mark_failed.append(task.id)
            continue

        if not marked:
            logger.info("Task %s was already marked by another run", task.id)
            result.already_handled.append(task.id)

    logger.info(
        "Reminder cycle done: candidates=%d sent=%d failed=%d skipped=%d",
        result.candidates,
        len(result.sent),
        len(result.failed),
        len(result.skipped),
    )
    return result
