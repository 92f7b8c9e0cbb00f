# tests/test_llm_client.py

from __future__ import annotations

from dataclasses import replace
from types import SimpleNamespace

import httpx
import openai
import pytest

from mindsender.assistant.tools import TASK_TOOLS
from mindsender.config import ConfigError
from mindsender.llm.client import OpenAICompatibleClient, friendly_llm_error_message
from mindsender.llm.offline import OfflineLLMClient


def _api_error(cls, status: int):
    request = httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions")
    return cls(f"HTTP {status}", response=httpx.Response(status, request=request), body=None)


def _response(content=None, tool_calls=None):
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class _ScriptedCompletions:
    def __init__(self, outcomes: dict[str, object]) -> None:
        self.outcomes = outcomes
        self.calls: list[dict] = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self.outcomes[kwargs["model"]]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _client(settings, outcomes: dict[str, object]) -> tuple[OpenAICompatibleClient, _ScriptedCompletions]:
    client = OpenAICompatibleClient(replace(settings, llm_api_key="gsk_test", llm_models=list(outcomes)))
    completions = _ScriptedCompletions(outcomes)
    client._client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return client, completions


def test_missing_key_raises_config_error(settings) -> None:
    with pytest.raises(ConfigError):
        OpenAICompatibleClient(settings)


def test_falls_back_to_next_model_and_parses_tool_calls(settings) -> None:
    call = SimpleNamespace(id="call_1", function=SimpleNamespace(name="list_tasks", arguments=None))
    client, completions = _client(
        settings,
        {
            "gone-model": _api_error(openai.NotFoundError, 404),
            "busy-model": _api_error(openai.RateLimitError, 429),
            "good-model": _response(tool_calls=[call]),
        },
    )

    result = client.complete([{"role": "user", "content": "hi"}], tools=TASK_TOOLS)

    assert result.model == "good-model"
    assert result.tool_calls[0].name == "list_tasks"
    assert result.tool_calls[0].arguments == "{}"
    assert completions.calls[-1]["tool_choice"] == "auto"

    # The 404 model is skipped on the next request.
    client.complete([{"role": "user", "content": "again"}])
    assert [c["model"] for c in completions.calls[3:]] == ["busy-model", "good-model"]
    assert "tools" not in completions.calls[-1]


def test_auth_error_fails_fast(settings) -> None:
    client, completions = _client(
        settings,
        {"first": _api_error(openai.AuthenticationError, 401), "second": _response(content="never")},
    )

    with pytest.raises(RuntimeError, match="authentication failed"):
        client.complete([{"role": "user", "content": "hi"}])
    assert len(completions.calls) == 1


def test_all_models_rate_limited(settings) -> None:
    client, _ = _client(settings, {"only": _api_error(openai.RateLimitError, 429)})

    with pytest.raises(RuntimeError, match="rate-limited"):
        client.complete([{"role": "user", "content": "hi"}])


def test_offline_client_and_friendly_messages() -> None:
    reply = OfflineLLMClient(reason="no key").complete([{"role": "user", "content": "hi"}])
    assert reply.tool_calls == []
    assert "not configured" in (reply.content or "")

    assert "MINDSENDER_LLM_API_KEY" in friendly_llm_error_message(
        ConfigError("LLM API key is not set. Set MINDSENDER_LLM_API_KEY in your .env.")
    )
    assert friendly_llm_error_message(RuntimeError("")) == "LLM error."
