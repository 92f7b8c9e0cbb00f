# src/mindsender/assistant/tools.py

"""
Task tools exposed to the assistant model.

The four tools map 1:1 onto the owner-scoped Task Store. Every outcome,
including bad arguments and store errors, is returned as text for the model;
nothing raises out of dispatch_tool_call.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, tzinfo
from typing import Any

from ..tasks.task_store import ScopedTaskStore

logger = logging.getLogger(__name__)

TASK_TOOLS: list[dict[str, Any]] = [
    {
        "type": "function",
        "function": {
            "name": "create_task",
            "description": "Create a new task in the user's agenda.",
            "parameters": {
                "type": "object",
                "properties": {
                    "subject": {"type": "string", "description": "Subject or title of the task"},
                    "description": {"type": "string", "description": "Details of what has to be done"},
                    "due_date": {
                        "type": "string",
                        "description": "Due date and time in ISO format (YYYY-MM-DDTHH:mm:ss)",
                    },
                },
                "required": ["subject", "description", "due_date"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "list_tasks",
            "description": "Get the user's current tasks.",
            "parameters": {"type": "object", "properties": {}},
        },
    },
    {
        "type": "function",
        "function": {
            "name": "update_task",
            "description": "Update an existing task.",
            "parameters": {
                "type": "object",
                "properties": {
                    "id": {"type": "string", "description": "ID of the task to update"},
                    "subject": {"type": "string"},
                    "description": {"type": "string"},
                    "due_date": {"type": "string", "description": "ISO format"},
                    "is_completed": {"type": "boolean"},
                },
                "required": ["id"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "delete_task",
            "description": "Delete a task from the agenda.",
            "parameters": {
                "type": "object",
                "properties": {"id": {"type": "string", "description": "ID of the task to delete"}},
                "required": ["id"],
            },
        },
    },
]

TOOL_NAMES = frozenset(t["function"]["name"] for t in TASK_TOOLS)


def parse_due_date(raw: Any, tz: tzinfo) -> datetime:
    """
    Parse an ISO date/time from the model.

    Naive values are interpreted in the user's display timezone; a bare date
    means 12:00 local time.
    """
    s = str(raw or "").strip()
    if not s:
        raise ValueError("due_date is required")
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)
    if "T" not in s and " " not in s:
        dt = dt.replace(hour=12, minute=0, second=0)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=tz)
    return dt


def _as_bool(raw: Any) -> bool | None:
    if raw is None:
        return None
    if isinstance(raw, bool):
        return raw
    return str(raw).strip().lower() in {"1", "true", "yes", "y", "on"}


def dispatch_tool_call(tasks: ScopedTaskStore, name: str, arguments: str | None, *, tz: tzinfo) -> str:
    """Run one tool call against the caller's tasks and describe the outcome."""
    try:
        args = json.loads(arguments or "{}")
    except json.JSONDecodeError:
        logger.info("Tool %s called with invalid JSON arguments: %r", name, arguments)
        return f"Error running {name}: arguments are not valid JSON."
    if not isinstance(args, dict):
        return f"Error running {name}: arguments must be a JSON object."

    logger.info("Assistant invoking tool %s owner=%s", name, tasks.owner_id)

    try:
        if name == "create_task":
            task = tasks.create_task(
                subject=str(args.get("subject") or ""),
                description=str(args.get("description") or ""),
                due_at=parse_due_date(args.get("due_date"), tz),
            )
            local = task.due_at.astimezone(tz).strftime("%Y-%m-%d %H:%M")
            return f'Task "{task.subject}" created for {local} (id {task.id}).'

        if name == "list_tasks":
            return json.dumps([t.to_public_dict() for t in tasks.list_tasks()], ensure_ascii=False)

        if name == "update_task":
            task_id = str(args.get("id") or "").strip()
            if not task_id:
                return "Error running update_task: id is required."
            due_raw = args.get("due_date")
            changed = tasks.update_task(
                task_id,
                subject=args.get("subject"),
                description=args.get("description"),
                due_at=parse_due_date(due_raw, tz) if due_raw else None,
                is_completed=_as_bool(args.get("is_completed")),
            )
            if not changed:
                return f"No task with id {task_id} was found for this user."
            return "Task updated successfully."

        if name == "delete_task":
            task_id = str(args.get("id") or "").strip()
            if not task_id:
                return "Error running delete_task: id is required."
            if not tasks.delete_task(task_id):
                return f"No task with id {task_id} was found for this user."
            return "Task deleted successfully."

    except ValueError as e:
        return f"Error running {name}: {e}"
    except Exception as e:
        logger.exception("Tool %s failed owner=%s", name, tasks.owner_id)
        return f"Error running {name}: {e}"

    return f"Tool not found: {name}"
