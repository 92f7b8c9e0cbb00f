# src/mindsender/assistant/assistant.py

"""
Natural-language task assistant.

Flow per user turn:
1. call the model with the conversation and the four task tools,
2. if it asked for tools, run them in order against the caller's tasks,
3. call the model again with the tool results and return its text.

There is no planning or retry loop beyond that, and no transaction spans
several tool calls of the same turn.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, tzinfo

from ..core.ports import ChatMessage, Completion, LLMClient
from ..tasks.task_store import ScopedTaskStore
from .tools import TASK_TOOLS, dispatch_tool_call

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """\
You are Sender AI, the assistant built into MindSender, a calendar-based to-do manager.
Help the user organize tasks and manage their time. Be concise and friendly.

You can create, list, update and delete the user's tasks with the provided tools.
- List tasks first when you need a task id to modify or delete.
- Resolve relative dates ("tomorrow", "Monday") from the current date given below.
- If no time is given for a new task, use 12:00.
- After using a tool, tell the user what you did.
"""

_EMPTY_AFTER_TOOLS = "I have processed your request."
_EMPTY_REPLY = "I could not generate a reply."


@dataclass(slots=True)
class AssistantReply:
    text: str
    tools_used: list[str] = field(default_factory=list)
    tool_results: list[str] = field(default_factory=list)


def _assistant_tool_message(completion: Completion) -> ChatMessage:
    return {
        "role": "assistant",
        "content": completion.content,
        "tool_calls": [
            {
                "id": tc.id,
                "type": "function",
                "function": {"name": tc.name, "arguments": tc.arguments},
            }
            for tc in completion.tool_calls
        ],
    }


class Assistant:
    def __init__(self, llm: LLMClient, *, tz: tzinfo, system_prompt: str = SYSTEM_PROMPT) -> None:
        self._llm = llm
        self._tz = tz
        self._system_prompt = system_prompt

    def build_system_prompt(self, now: datetime | None = None) -> str:
        now = now or datetime.now(UTC)
        local = now.astimezone(self._tz)
        return f"{self._system_prompt}\nCurrent date and time: {local.strftime('%A %Y-%m-%d %H:%M %Z')}."

    def ask(
        self,
        tasks: ScopedTaskStore,
        history: list[ChatMessage],
        text: str,
        *,
        now: datetime | None = None,
    ) -> AssistantReply:
        """
        Answer one user utterance. `history` holds prior user/assistant turns
        (plain text only); it is not modified here.
        """
        messages: list[ChatMessage] = [
            {"role": "system", "content": self.build_system_prompt(now)},
            *history,
            {"role": "user", "content": text},
        ]

        first = self._llm.complete(messages, tools=TASK_TOOLS)
        if not first.tool_calls:
            return AssistantReply(text=(first.content or "").strip() or _EMPTY_REPLY)

        reply = AssistantReply(text="")
        tool_messages: list[ChatMessage] = []
        for call in first.tool_calls:
            result = dispatch_tool_call(tasks, call.name, call.arguments, tz=self._tz)
            reply.tools_used.append(call.name)
            reply.tool_results.append(result)
            tool_messages.append({"role": "tool", "tool_call_id": call.id, "content": result})

        logger.debug("Assistant ran tools=%s owner=%s", reply.tools_used, tasks.owner_id)

        second = self._llm.complete([*messages, _assistant_tool_message(first), *tool_messages])
        reply.text = (second.content or "").strip() or _EMPTY_AFTER_TOOLS
        return reply
