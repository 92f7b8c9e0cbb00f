# tests/test_reminder_job.py

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta

import pytest

from mindsender.accounts.profile_store import ProfileStore
from mindsender.config import Settings
from mindsender.reminders.reminder_job import ReminderJobError, run_reminder_cycle
from mindsender.tasks.task_store import TaskStore

from .conftest import NOW
from .fakes import CountingProfiles, FakeMailer, RecordingSleep


async def _run(settings: Settings, tasks, profiles, mailer, sleep=None, now: datetime = NOW):
    return await run_reminder_cycle(
        now,
        config=settings.reminder_settings(),
        tasks=tasks,
        profiles=profiles,
        mailer=mailer,
        sleep=sleep or RecordingSleep(),
    )


@pytest.mark.asyncio
async def test_task_inside_window_is_reminded_once(
    settings: Settings, profiles: ProfileStore, task_store: TaskStore
) -> None:
    alice = profiles.create_profile("alice@example.com", "Alice Doe")
    task = task_store.for_owner(alice.id).create_task("Chemistry exam", "Chapter 4", NOW + timedelta(hours=3))
    mailer = FakeMailer()

    result = await _run(settings, task_store, profiles, mailer)

    assert result.sent == [task.id]
    assert len(mailer.sent) == 1
    email = mailer.sent[0]
    assert email.to_address == "alice@example.com"
    assert "Chemistry exam" in email.subject
    assert "Hi, Alice" in email.text
    assert task_store.get_task(task.id).reminder_sent is True

    # Second invocation finds nothing left to do.
    again = await _run(settings, task_store, profiles, mailer)
    assert again.candidates == 0
    assert len(mailer.sent) == 1


@pytest.mark.asyncio
async def test_task_outside_window_is_left_alone(
    settings: Settings, profiles: ProfileStore, task_store: TaskStore
) -> None:
    alice = profiles.create_profile("alice@example.com")
    task = task_store.for_owner(alice.id).create_task("Far away", "", NOW + timedelta(hours=10))
    mailer = FakeMailer()

    result = await _run(settings, task_store, profiles, mailer)

    assert result.candidates == 0
    assert mailer.attempts == []
    assert task_store.get_task(task.id).reminder_sent is False


@pytest.mark.asyncio
async def test_owner_profiles_are_fetched_in_one_batch(
    settings: Settings, profiles: ProfileStore, task_store: TaskStore
) -> None:
    alice = profiles.create_profile("alice@example.com")
    tasks = task_store.for_owner(alice.id)
    first = tasks.create_task("One", "", NOW + timedelta(hours=2, minutes=30))
    second = tasks.create_task("Two", "", NOW + timedelta(hours=3))
    counting = CountingProfiles(profiles)
    mailer = FakeMailer()
    sleep = RecordingSleep()

    result = await _run(settings, task_store, counting, mailer, sleep)

    assert counting.batch_calls == [{alice.id}]
    assert [e.subject for e in mailer.sent] == ["Reminder: One", "Reminder: Two"]
    assert sleep.delays == [1.0, 1.0]
    assert result.sent == [first.id, second.id]
    assert task_store.get_task(first.id).reminder_sent is True
    assert task_store.get_task(second.id).reminder_sent is True


@pytest.mark.asyncio
async def test_missing_owner_profile_is_skipped(settings: Settings, task_store: TaskStore) -> None:
    owner_store = ProfileStore(settings.db_path)
    alice = owner_store.create_profile("alice@example.com")
    task = task_store.for_owner(alice.id).create_task("Orphaned", "", NOW + timedelta(hours=3))

    class NoProfiles:
        def get_profiles(self, profile_ids):
            return {}

    mailer = FakeMailer()
    result = await _run(settings, task_store, NoProfiles(), mailer)

    assert result.skipped == [task.id]
    assert mailer.attempts == []
    assert task_store.get_task(task.id).reminder_sent is False


@pytest.mark.asyncio
async def test_owner_without_email_is_skipped(
    settings: Settings, profiles: ProfileStore, task_store: TaskStore
) -> None:
    alice = profiles.create_profile("alice@example.com", "Alice")
    task = task_store.for_owner(alice.id).create_task("No inbox", "", NOW + timedelta(hours=3))

    class BlankEmails:
        def get_profiles(self, profile_ids):
            return {alice.id: replace(alice, email="  ")}

    mailer = FakeMailer()
    result = await _run(settings, task_store, BlankEmails(), mailer)

    assert result.skipped == [task.id]
    assert mailer.attempts == []
    assert task_store.get_task(task.id).reminder_sent is False


@pytest.mark.asyncio
async def test_send_failure_does_not_stop_the_batch(
    settings: Settings, profiles: ProfileStore, task_store: TaskStore
) -> None:
    alice = profiles.create_profile("alice@example.com")
    bob = profiles.create_profile("bob@example.com")
    failing = task_store.for_owner(alice.id).create_task("First", "", NOW + timedelta(hours=2, minutes=10))
    ok = task_store.for_owner(bob.id).create_task("Second", "", NOW + timedelta(hours=3))
    mailer = FakeMailer(fail_first=1)

    result = await _run(settings, task_store, profiles, mailer)

    assert result.failed == [failing.id]
    assert result.sent == [ok.id]
    assert result.attempted == 2
    assert task_store.get_task(failing.id).reminder_sent is False
    assert task_store.get_task(ok.id).reminder_sent is True

    # The failed task is picked up again by the next invocation.
    retry = await _run(settings, task_store, profiles, FakeMailer())
    assert retry.sent == [failing.id]


@pytest.mark.asyncio
async def test_already_reminded_tasks_are_never_resent(
    settings: Settings, profiles: ProfileStore, task_store: TaskStore
) -> None:
    alice = profiles.create_profile("alice@example.com")
    task = task_store.for_owner(alice.id).create_task("Done before", "", NOW + timedelta(hours=3))
    task_store.mark_reminder_sent(task.id)
    mailer = FakeMailer()

    result = await _run(settings, task_store, profiles, mailer)

    assert result.candidates == 0
    assert mailer.attempts == []


@pytest.mark.asyncio
async def test_concurrent_mark_counts_as_already_handled(
    settings: Settings, profiles: ProfileStore, task_store: TaskStore
) -> None:
    alice = profiles.create_profile("alice@example.com")
    task = task_store.for_owner(alice.id).create_task("Raced", "", NOW + timedelta(hours=3))

    class RacingMailer(FakeMailer):
        async def send(self, email):
            await FakeMailer.send(self, email)
            # Another run marks the task while this one is still sending.
            task_store.mark_reminder_sent(task.id)

    result = await _run(settings, task_store, profiles, RacingMailer())

    assert result.sent == [task.id]
    assert result.already_handled == [task.id]


@pytest.mark.asyncio
async def test_mark_failure_is_reported(settings: Settings, profiles: ProfileStore, task_store: TaskStore) -> None:
    alice = profiles.create_profile("alice@example.com")
    task = task_store.for_owner(alice.id).create_task("Unmarked", "", NOW + timedelta(hours=3))

    class BrokenMarks:
        def list_reminder_candidates(self, window_start, window_end):
            return task_store.list_reminder_candidates(window_start, window_end)

        def mark_reminder_sent(self, task_id):
            raise RuntimeError("database is locked")

    result = await _run(settings, BrokenMarks(), profiles, FakeMailer())

    assert result.sent == [task.id]
    assert result.mark_failed == [task.id]


@pytest.mark.asyncio
async def test_query_failure_aborts_the_cycle(settings: Settings, profiles: ProfileStore) -> None:
    class BrokenStore:
        def list_reminder_candidates(self, window_start, window_end):
            raise RuntimeError("connection refused")

        def mark_reminder_sent(self, task_id):
            raise AssertionError("must not be called")

    mailer = FakeMailer()
    with pytest.raises(ReminderJobError):
        await _run(settings, BrokenStore(), profiles, mailer)
    assert mailer.attempts == []


@pytest.mark.asyncio
async def test_window_follows_configured_offsets(tmp_path, profiles: ProfileStore) -> None:
    from .conftest import make_settings

    settings = make_settings(tmp_path, reminder_offset_low_minutes=0.0, reminder_offset_high_minutes=60.0)
    store = TaskStore(settings.db_path)
    alice = profiles.create_profile("alice@example.com")
    soon = store.for_owner(alice.id).create_task("Soon", "", NOW + timedelta(minutes=30))
    store.for_owner(alice.id).create_task("Later", "", NOW + timedelta(hours=3))

    result = await _run(settings, store, profiles, FakeMailer())

    assert result.window_start == NOW
    assert result.window_end == NOW + timedelta(hours=1)
    assert result.sent == [soon.id]


@pytest.mark.asyncio
async def test_naive_now_is_rejected(settings: Settings, profiles: ProfileStore, task_store: TaskStore) -> None:
    with pytest.raises(ValueError):
        await _run(settings, task_store, profiles, FakeMailer(), now=datetime(2026, 10, 16, 10, 0))
