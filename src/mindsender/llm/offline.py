# src/mindsender/llm/offline.py

from __future__ import annotations

from typing import Any

from ..core.ports import ChatMessage, Completion


class OfflineLLMClient:
    """
    Stand-in used when no LLM API key is configured.

    Never calls tools; answers every message with a "not configured" notice
    so the console keeps working instead of crashing.
    """

    def __init__(self, reason: str = "") -> None:
        self.reason = reason

    def complete(
        self,
        messages: list[ChatMessage],
        *,
        tools: list[dict[str, Any]] | None = None,
    ) -> Completion:
        text = (
            "The assistant is not configured yet: set MINDSENDER_LLM_API_KEY "
            "(and optionally MINDSENDER_LLM_MODELS) to enable it. "
            "You can still manage tasks with slash commands (/help)."
        )
        return Completion(content=text, tool_calls=[], model="offline")
