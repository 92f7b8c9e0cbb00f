# tests/test_commands.py

from __future__ import annotations

from dataclasses import replace

from mindsender.accounts.profile_models import PlanTier, Role
from mindsender.cli.commands import CommandRegistry, registry
from mindsender.connectors.console_connector import handle_line
from mindsender.core.ports import Completion

from .fakes import FakeLLMClient


def test_command_registry_routes_2_and_3_params(state) -> None:
    reg = CommandRegistry()
    called = {"h2": 0, "h3": 0}
    notes: list[str] = []

    def h2(state, args):
        called["h2"] += 1
        return "h2:" + ",".join(args)

    def h3(state, args, emit):
        called["h3"] += 1
        if emit is not None:
            emit("note")
        return "h3"

    reg.register("a", h2, "a")
    reg.register("b", h3, "b", aliases=["bee"])

    assert reg.handle(state, "/a x y") == "h2:x,y"
    assert reg.handle(state, "/BEE", emit=notes.append) == "h3"
    assert called == {"h2": 1, "h3": 1}
    assert notes == ["note"]


def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert reg.handle(state, "hello") is None
    assert "Unknown command" in (reg.handle(state, "/nope") or "")
    assert "Empty command" in (reg.handle(state, "/") or "")


def test_commands_require_sign_in(state) -> None:
    assert registry.handle(state, "/tasks").startswith("Not signed in")
    assert handle_line(state, "what is on my agenda?").startswith("Sign in first")


def test_register_add_and_list_tasks(state) -> None:
    assert registry.handle(state, "/register alice@example.com Alice Doe").startswith("Welcome, Alice Doe")

    out = registry.handle(state, "/add 2026-10-20 09:30 | Physics exam | Chapter 3")
    assert out.startswith("Created: [ ]")
    assert "2026-10-20 09:30  Physics exam - Chapter 3" in out

    listing = registry.handle(state, "/tasks")
    assert listing.startswith("Tasks (0/1 completed):")

    [task] = state.user_tasks().list_tasks()
    assert registry.handle(state, f"/done {task.id[:6]}") == "Marked completed: Physics exam"
    assert registry.handle(state, "/tasks").startswith("Tasks (1/1 completed):")

    assert registry.handle(state, f"/edit {task.id[:6]} | | Physics final") == "Task updated."
    assert state.user_tasks().get_task(task.id).subject == "Physics final"

    assert registry.handle(state, f"/rm {task.id}") == "Deleted: Physics final"
    assert registry.handle(state, "/tasks") == "No tasks."


def test_bad_input_is_reported(state) -> None:
    registry.handle(state, "/register alice@example.com")
    assert registry.handle(state, "/add tomorrow-ish | Something").startswith("Invalid input:")
    assert registry.handle(state, "/register not-an-email").startswith("Invalid input:")


def test_admin_commands(state) -> None:
    registry.handle(state, "/register bob@example.com Bob")
    registry.handle(state, "/register root@example.com Root")

    assert registry.handle(state, "/stats") == "This command is only available to administrators."

    state.profiles.set_role(state.current_user.id, Role.ADMIN)
    state.user_tasks().create_task("Audit", "", state.current_user.created_at)

    stats = registry.handle(state, "/stats")
    assert "Users: 2" in stats
    assert "Tasks: 1" in stats
    assert "Completed: 0 (0%)" in stats

    assert registry.handle(state, "/setplan bob@example.com pro") == "bob@example.com is now on the pro plan."
    assert state.profiles.get_profile_by_email("bob@example.com").plan == PlanTier.PRO


def test_configured_admin_email_registers_as_admin(state) -> None:
    state.settings = replace(state.settings, admin_emails=["boss@example.com"])

    registry.handle(state, "/register Boss@Example.com Boss")

    assert state.current_user.is_admin
    assert registry.handle(state, "/stats").startswith("Admin stats:")


def test_friends_and_messages_through_commands(state) -> None:
    registry.handle(state, "/register bob@example.com Bob")
    registry.handle(state, "/register alice@example.com Alice")
    assert registry.handle(state, "/befriend bob@example.com") == "Request sent."

    notes: list[str] = []
    registry.handle(state, "/login bob@example.com", emit=notes.append)
    assert "Pending friend requests:" in registry.handle(state, "/requests")
    [incoming] = state.social.list_incoming_requests(state.current_user.id)
    assert registry.handle(state, f"/accept {incoming.request.id[:8]}") == "Friend request accepted."

    alice = state.profiles.get_profile_by_email("alice@example.com")
    state.social.send_message(alice.id, state.current_user.id, "hi bob")

    assert notes == ["[DM from alice@example.com] hi bob"]
    # The live feed already advanced the cursor.
    assert registry.handle(state, "/inbox") == "No new messages."
    assert "alice@example.com: hi bob" in registry.handle(state, "/chat alice@example.com")


def test_free_text_goes_to_the_assistant(state, fake_llm: FakeLLMClient) -> None:
    fake_llm.completions = [Completion(content="You have nothing planned.")]
    registry.handle(state, "/register alice@example.com Alice")

    assert handle_line(state, "what do I have today?") == "You have nothing planned."

    history = state.history_for(state.current_user.id)
    assert history == [
        {"role": "user", "content": "what do I have today?"},
        {"role": "assistant", "content": "You have nothing planned."},
    ]
    assert registry.handle(state, "/clear") == "Assistant conversation cleared."
    assert state.history_for(state.current_user.id) == []
