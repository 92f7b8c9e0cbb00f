# src/mindsender/llm/client.py

from __future__ import annotations

import logging
import time
from typing import Any

import httpx
import openai
from openai import OpenAI

from ..config import ConfigError, Settings
from ..core.ports import ChatMessage, Completion, ToolCall

logger = logging.getLogger(__name__)

_BAD_MODEL_COOLDOWN_SECONDS = 3600.0


def _is_auth_error(exc: Exception) -> bool:
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return True
    return exc.__class__.__name__ in {"AuthenticationError", "PermissionDeniedError", "UnauthorizedError"}


def _is_rate_limit_error(exc: Exception) -> bool:
    if isinstance(exc, openai.RateLimitError):
        return True
    return exc.__class__.__name__ in {"RateLimitError", "TooManyRequestsError"}


def _is_connection_error(exc: Exception) -> bool:
    if isinstance(exc, (openai.APIConnectionError, openai.APITimeoutError)):
        return True
    return exc.__class__.__name__ in {"Timeout", "ConnectTimeout", "ReadTimeout", "WriteTimeout"}


def _is_not_found_error(exc: Exception) -> bool:
    # Decommissioned / unknown model names come back as HTTP 404 (sometimes 400).
    return isinstance(exc, openai.NotFoundError) or exc.__class__.__name__ == "NotFoundError"


def friendly_llm_error_message(err: Exception) -> str:
    msg = str(err).strip() or "LLM error."
    if "LLM API key is not set" in msg:
        return "The assistant is not configured (missing API key). Set MINDSENDER_LLM_API_KEY in .env."
    if "LLM model list is empty" in msg:
        return "The assistant is not configured (no models). Set MINDSENDER_LLM_MODELS in .env."
    if "LLM base URL is not set" in msg:
        return "The assistant is not configured (missing base URL). Set MINDSENDER_LLM_BASE_URL in .env."
    return msg


def _parse_completion(response: Any, model: str) -> Completion:
    choice0 = response.choices[0]
    message = choice0.message
    calls: list[ToolCall] = []
    for tc in getattr(message, "tool_calls", None) or []:
        fn = getattr(tc, "function", None)
        if fn is None:
            continue
        calls.append(ToolCall(id=str(tc.id), name=str(fn.name), arguments=str(fn.arguments or "{}")))
    return Completion(content=message.content, tool_calls=calls, model=model)


class OpenAICompatibleClient:
    """
    Chat completions against an OpenAI-compatible endpoint (Groq by default).

    Behavior:
    - Tries models in the configured order (MINDSENDER_LLM_MODELS).
    - 404 (model decommissioned) -> skip the model for an hour, try next.
    - Rate limit / network issues -> try next.
    - Auth issues -> fail fast (no retries across models).
    - SDK retries are disabled so fallback stays quick.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        connect_timeout: float = 5.0,
        read_timeout: float = 30.0,
    ) -> None:
        settings.require_llm()
        self._models = [m.strip() for m in settings.llm_models if m and m.strip()]
        self._bad_models: dict[str, float] = {}  # model -> retry_at (monotonic)
        self._client = OpenAI(
            base_url=settings.llm_base_url,
            api_key=str(settings.llm_api_key),
            timeout=httpx.Timeout(connect=connect_timeout, read=read_timeout, write=10.0, pool=connect_timeout),
            max_retries=0,
        )

    def complete(
        self,
        messages: list[ChatMessage],
        *,
        tools: list[dict[str, Any]] | None = None,
    ) -> Completion:
        if not self._models:
            raise ConfigError("LLM model list is empty. Set MINDSENDER_LLM_MODELS in your .env.")

        last_error: Exception | None = None
        now = time.monotonic()

        for model in self._models:
            retry_at = self._bad_models.get(model)
            if retry_at is not None and retry_at > now:
                continue

            kwargs: dict[str, Any] = {"model": model, "messages": messages}
            if tools:
                kwargs["tools"] = tools
                kwargs["tool_choice"] = "auto"

            t0 = time.monotonic()
            try:
                response = self._client.chat.completions.create(**kwargs)
            except Exception as e:
                last_error = e

                if _is_auth_error(e):
                    raise RuntimeError(
                        "LLM authentication failed. Check your API key (MINDSENDER_LLM_API_KEY)."
                    ) from e

                if _is_not_found_error(e):
                    self._bad_models[model] = time.monotonic() + _BAD_MODEL_COOLDOWN_SECONDS
                    logger.info("LLM: model not available (404): %s", model)
                    continue

                if _is_rate_limit_error(e):
                    logger.info("LLM: rate-limited on model=%s, trying next", model)
                    continue

                if _is_connection_error(e):
                    logger.info("LLM: network/timeout error on model=%s, trying next", model)
                    continue

                logger.info("LLM: error on model=%s (%s), trying next", model, e.__class__.__name__)
                continue

            completion = _parse_completion(response, model)
            logger.info(
                "LLM: model=%s answered in %.2fs (tool_calls=%d)",
                model,
                time.monotonic() - t0,
                len(completion.tool_calls),
            )
            return completion

        if last_error is not None:
            if _is_rate_limit_error(last_error):
                raise RuntimeError("LLM is rate-limited. Try again later.") from last_error
            if _is_connection_error(last_error):
                raise RuntimeError("LLM network/timeout error. Try again later or change models.") from last_error
            raise RuntimeError("All LLM models failed.") from last_error

        raise RuntimeError("All LLM models failed.")
