# src/mindsender/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import cast

from ..accounts.admin import admin_stats
from ..accounts.profile_models import PlanTier, Profile, Role
from ..assistant.tools import parse_due_date
from ..core.state import AppState
from ..social.social_models import DirectMessage
from ..tasks.task_models import Task

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

PLAN_FEATURES = {
    PlanTier.FREE: ["Calendar and tasks", "Sender AI assistant", "E-mail reminders", "Friends and chat"],
    PlanTier.PRO: ["Everything in Free", "Appointments panel", "Talk about your projects with the developer"],
    PlanTier.ELITE: ["Everything in Pro", "Admin panel access", "Direct help with the MindSender code"],
}


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /tasks, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(self, state: AppState, line: str, emit: CommandEmitter | None = None) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return h3(state, args, emit)
            h2 = cast(CommandHandler2, handler)
            return h2(state, args)
        except PermissionError as e:
            return str(e)
        except ValueError as e:
            return f"Invalid input: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _tz(state: AppState):
    return state.settings.reminder_settings().tzinfo()


def _fmt_local(state: AppState, dt: datetime) -> str:
    return dt.astimezone(_tz(state)).strftime("%Y-%m-%d %H:%M")


def _fmt_task(state: AppState, t: Task) -> str:
    mark = "x" if t.is_completed else " "
    line = f"[{mark}] {t.id[:8]}  {_fmt_local(state, t.due_at)}  {t.subject}"
    if t.description:
        line += f" - {t.description}"
    return line


def _segments(args: list[str]) -> list[str]:
    return [s.strip() for s in " ".join(args).split("|")]


def _resolve_task(state: AppState, ref: str) -> Task | None:
    """Accept a full task id or a unique prefix of one of the user's tasks."""
    tasks = state.user_tasks()
    exact = tasks.get_task(ref)
    if exact is not None:
        return exact
    matches = [t for t in tasks.list_tasks() if t.id.startswith(ref)]
    return matches[0] if len(matches) == 1 else None


def _profile_by_email(state: AppState, email: str) -> Profile:
    p = state.profiles.get_profile_by_email(email)
    if p is None:
        raise ValueError(f"no user with email {email}")
    return p


def _require_admin(state: AppState) -> Profile:
    state.refresh_current_user()
    user = state.require_user()
    if not user.is_admin:
        raise PermissionError("This command is only available to administrators.")
    return user


# ---- session ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    user = state.current_user.label() if state.current_user else "(not signed in)"
    models = ", ".join(list(getattr(state.settings, "llm_models", []) or []))
    assistant = "ON" if state.llm_configured else "OFF (not configured)"
    return (
        "Status:\n"
        f"  User: {user}\n"
        f"  Assistant: {assistant}\n"
        f"  Models (priority -> fallback): {models}"
    )


def _start_session(state: AppState, profile: Profile, emit: CommandEmitter | None) -> None:
    if state.unsubscribe_feed is not None:
        state.unsubscribe_feed()

    state.current_user = profile
    inbound = state.social.list_messages_since(profile.id, 0)
    state.last_seen_message_id = inbound[-1].id if inbound else 0

    def _on_message(msg: DirectMessage) -> None:
        state.last_seen_message_id = max(state.last_seen_message_id, msg.id)
        if emit is not None:
            sender = state.profiles.get_profile(msg.sender_id)
            emit(f"[DM from {sender.email if sender else msg.sender_id}] {msg.content}")

    state.unsubscribe_feed = state.social.feed.subscribe(profile.id, _on_message)
    logger.info("Signed in user=%s", profile.id)


def cmd_register(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/register <email> [display name]"""
    if not args:
        return "Usage: /register <email> [display name]"
    admins = getattr(state.settings, "admin_emails", []) or []
    role = Role.ADMIN if args[0].strip().lower() in admins else Role.USER
    profile = state.profiles.create_profile(args[0], " ".join(args[1:]), role=role)
    _start_session(state, profile, emit)
    return f"Welcome, {profile.display_name or profile.email}! You are signed in."


def cmd_login(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /login <email>"
    profile = state.profiles.get_profile_by_email(args[0])
    if profile is None:
        return "No account with that email. Use /register <email> [name]."
    _start_session(state, profile, emit)
    return f"Signed in as {profile.label()}."


def cmd_logout(state: AppState, args: list[str]) -> str:
    if state.current_user is None:
        return "Not signed in."
    if state.unsubscribe_feed is not None:
        state.unsubscribe_feed()
        state.unsubscribe_feed = None
    state.current_user = None
    state.last_seen_message_id = 0
    return "Signed out."


def cmd_whoami(state: AppState, args: list[str]) -> str:
    state.refresh_current_user()
    user = state.require_user()
    return f"{user.label()}\n  Role: {user.role.value}\n  Plan: {user.plan.value}"


def cmd_name(state: AppState, args: list[str]) -> str:
    user = state.require_user()
    name = " ".join(args).strip()
    if not name:
        return "Usage: /name <display name>"
    state.profiles.update_display_name(user.id, name)
    state.refresh_current_user()
    return f"Display name set to {name}."


# ---- tasks ----


def cmd_tasks(state: AppState, args: list[str]) -> str:
    """/tasks        -> all tasks
    /tasks today  -> today's open tasks"""
    tasks = state.user_tasks().list_tasks()
    if args and args[0].lower() == "today":
        today = datetime.now(UTC).astimezone(_tz(state)).date()
        tasks = [t for t in tasks if not t.is_completed and t.due_at.astimezone(_tz(state)).date() == today]
    if not tasks:
        return "No tasks."
    done = sum(1 for t in tasks if t.is_completed)
    lines = [f"Tasks ({done}/{len(tasks)} completed):"]
    lines += [f"  {_fmt_task(state, t)}" for t in tasks]
    return "\n".join(lines)


def cmd_add(state: AppState, args: list[str]) -> str:
    """/add <YYYY-MM-DD HH:MM> | <subject> | [description]"""
    seg = _segments(args)
    if len(seg) < 2 or not seg[0] or not seg[1]:
        return "Usage: /add <YYYY-MM-DD HH:MM> | <subject> | [description]"
    due = parse_due_date(seg[0], _tz(state))
    task = state.user_tasks().create_task(seg[1], seg[2] if len(seg) > 2 else "", due)
    return f"Created: {_fmt_task(state, task)}"


def cmd_edit(state: AppState, args: list[str]) -> str:
    """/edit <id> | [when] | [subject] | [description]  (empty parts stay unchanged)"""
    seg = _segments(args)
    if not seg or not seg[0]:
        return "Usage: /edit <id> | [YYYY-MM-DD HH:MM] | [subject] | [description]"
    task = _resolve_task(state, seg[0])
    if task is None:
        return f"No task matches {seg[0]!r}."
    seg += [""] * (4 - len(seg))
    changed = state.user_tasks().update_task(
        task.id,
        due_at=parse_due_date(seg[1], _tz(state)) if seg[1] else None,
        subject=seg[2] or None,
        description=seg[3] or None,
    )
    return "Task updated." if changed else "Nothing changed."


def cmd_done(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /done <id>"
    task = _resolve_task(state, args[0])
    if task is None or not state.user_tasks().toggle_completed(task.id):
        return f"No task matches {args[0]!r}."
    return f"Marked {'open' if task.is_completed else 'completed'}: {task.subject}"


def cmd_delete(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /del <id>"
    task = _resolve_task(state, args[0])
    if task is None or not state.user_tasks().delete_task(task.id):
        return f"No task matches {args[0]!r}."
    return f"Deleted: {task.subject}"


def cmd_clear(state: AppState, args: list[str]) -> str:
    user = state.require_user()
    state.dialog_histories.pop(user.id, None)
    return "Assistant conversation cleared."


# ---- friends & messages ----


def cmd_friends(state: AppState, args: list[str]) -> str:
    user = state.require_user()
    friends = state.social.list_friends(user.id)
    if not friends:
        return "No friends yet. Use /befriend <email>."
    return "Friends:\n" + "\n".join(f"  {p.label()}" for p in friends)


def cmd_requests(state: AppState, args: list[str]) -> str:
    user = state.require_user()
    incoming = state.social.list_incoming_requests(user.id)
    if not incoming:
        return "No pending friend requests."
    lines = ["Pending friend requests:"]
    for item in incoming:
        who = item.sender.label() if item.sender else "Unknown user"
        lines.append(f"  {item.request.id[:8]}  from {who}")
    return "\n".join(lines)


def cmd_befriend(state: AppState, args: list[str]) -> str:
    user = state.require_user()
    if not args:
        return "Usage: /befriend <email>"
    return state.social.send_friend_request(user.id, args[0]).message


def _resolve_request_id(state: AppState, ref: str) -> str | None:
    user = state.require_user()
    ids = [i.request.id for i in state.social.list_incoming_requests(user.id)]
    matches = [i for i in ids if i == ref or i.startswith(ref)]
    return matches[0] if len(matches) == 1 else None


def cmd_accept(state: AppState, args: list[str]) -> str:
    user = state.require_user()
    req_id = _resolve_request_id(state, args[0]) if args else None
    if req_id is None or not state.social.accept_request(req_id, user.id):
        return "No pending request matches. Use /requests."
    return "Friend request accepted."


def cmd_reject(state: AppState, args: list[str]) -> str:
    user = state.require_user()
    req_id = _resolve_request_id(state, args[0]) if args else None
    if req_id is None or not state.social.reject_request(req_id, user.id):
        return "No pending request matches. Use /requests."
    return "Friend request rejected."


def cmd_msg(state: AppState, args: list[str]) -> str:
    user = state.require_user()
    if len(args) < 2:
        return "Usage: /msg <email> <text>"
    friend = _profile_by_email(state, args[0])
    state.social.send_message(user.id, friend.id, " ".join(args[1:]))
    return f"Sent to {friend.email}."


def cmd_chat(state: AppState, args: list[str]) -> str:
    user = state.require_user()
    if not args:
        return "Usage: /chat <email>"
    friend = _profile_by_email(state, args[0])
    messages = state.social.list_conversation(user.id, friend.id)
    state.social.mark_conversation_read(user.id, friend.id)
    if not messages:
        return f"No messages with {friend.email} yet."
    lines = [f"Conversation with {friend.label()}:"]
    for m in messages:
        who = "you" if m.sender_id == user.id else friend.email
        lines.append(f"  [{_fmt_local(state, m.created_at)}] {who}: {m.content}")
    return "\n".join(lines)


def cmd_inbox(state: AppState, args: list[str]) -> str:
    """Poll for inbound messages newer than the last one seen."""
    user = state.require_user()
    fresh = state.social.list_messages_since(user.id, state.last_seen_message_id)
    if not fresh:
        return "No new messages."
    state.last_seen_message_id = fresh[-1].id
    senders = state.profiles.get_profiles(m.sender_id for m in fresh)
    lines = [f"{len(fresh)} new message(s):"]
    for m in fresh:
        sender = senders.get(m.sender_id)
        lines.append(f"  [{_fmt_local(state, m.created_at)}] {sender.email if sender else m.sender_id}: {m.content}")
    return "\n".join(lines)


# ---- memberships & admin ----


def cmd_plans(state: AppState, args: list[str]) -> str:
    current = state.current_user.plan if state.current_user else None
    lines = ["Membership plans:"]
    for tier, features in PLAN_FEATURES.items():
        marker = " (current)" if tier == current else ""
        lines.append(f"  {tier.value.upper()}{marker}")
        lines += [f"    - {f}" for f in features]
    return "\n".join(lines)


def cmd_stats(state: AppState, args: list[str]) -> str:
    _require_admin(state)
    s = admin_stats(state.profiles, state.tasks)
    return (
        "Admin stats:\n"
        f"  Users: {s.total_users}\n"
        f"  Tasks: {s.total_tasks}\n"
        f"  Completed: {s.completed_tasks} ({s.completion_rate:.0%})"
    )


def cmd_setplan(state: AppState, args: list[str]) -> str:
    _require_admin(state)
    if len(args) != 2:
        return "Usage: /setplan <email> <free|pro|elite>"
    target = _profile_by_email(state, args[0])
    plan = PlanTier(args[1].lower())
    state.profiles.set_plan(target.id, plan)
    return f"{target.email} is now on the {plan.value} plan."


def cmd_setrole(state: AppState, args: list[str]) -> str:
    _require_admin(state)
    if len(args) != 2:
        return "Usage: /setrole <email> <user|admin>"
    target = _profile_by_email(state, args[0])
    role = Role(args[1].lower())
    state.profiles.set_role(target.id, role)
    return f"{target.email} now has role {role.value}."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show session and assistant status.")
registry.register("register", cmd_register, help_text="Create an account: /register <email> [name].")
registry.register("login", cmd_login, help_text="Sign in: /login <email>.")
registry.register("logout", cmd_logout, help_text="Sign out.")
registry.register("whoami", cmd_whoami, help_text="Show your profile, role and plan.", aliases=["me"])
registry.register("name", cmd_name, help_text="Change your display name: /name <name>.")
registry.register("tasks", cmd_tasks, help_text="List tasks: /tasks | /tasks today.", aliases=["ls"])
registry.register("add", cmd_add, help_text="Add a task: /add <YYYY-MM-DD HH:MM> | <subject> | [description].")
registry.register("edit", cmd_edit, help_text="Edit a task: /edit <id> | [when] | [subject] | [description].")
registry.register("done", cmd_done, help_text="Toggle completion: /done <id>.")
registry.register("del", cmd_delete, help_text="Delete a task: /del <id>.", aliases=["rm"])
registry.register("clear", cmd_clear, help_text="Forget the assistant conversation.")
registry.register("friends", cmd_friends, help_text="List your friends.")
registry.register("requests", cmd_requests, help_text="List pending friend requests.")
registry.register("befriend", cmd_befriend, help_text="Send a friend request: /befriend <email>.")
registry.register("accept", cmd_accept, help_text="Accept a friend request: /accept <id>.")
registry.register("reject", cmd_reject, help_text="Reject a friend request: /reject <id>.")
registry.register("msg", cmd_msg, help_text="Message a friend: /msg <email> <text>.")
registry.register("chat", cmd_chat, help_text="Show the conversation with a friend: /chat <email>.")
registry.register("inbox", cmd_inbox, help_text="Show new inbound messages.")
registry.register("plans", cmd_plans, help_text="Show membership plans.")
registry.register("stats", cmd_stats, help_text="Admin: users/tasks statistics.")
registry.register("setplan", cmd_setplan, help_text="Admin: /setplan <email> <free|pro|elite>.")
registry.register("setrole", cmd_setrole, help_text="Admin: /setrole <email> <user|admin>.")
