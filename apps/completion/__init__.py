"""Completion backend client.

Talks to any OpenAI-compatible chat completions endpoint (OpenRouter by
default) through the ``openai`` SDK.  API errors and unusable payloads are
both reported as :class:`~lib.contracts.errors.CompletionFailed`.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Optional, Sequence

import openai
from openai import OpenAI

from lib.contracts.errors import CompletionFailed
from lib.contracts.records import ChatMessage, ConversationTurn
from lib.telemetry.logger import get_logger

from apps.history import to_chat_messages

logger = get_logger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."
DEFAULT_MODEL = "moonshotai/kimi-k2:free"


def build_context(
    system_prompt: str,
    history: Iterable[ConversationTurn],
    current_text: str,
) -> List[ChatMessage]:
    """Assemble ``[system, *history, user(current_text)]``."""

    messages = [ChatMessage(role="system", content=system_prompt)]
    messages.extend(to_chat_messages(history))
    messages.append(ChatMessage(role="user", content=current_text))
    return messages


def _error_reason(exc: openai.APIError) -> str:
    body = exc.body
    if isinstance(body, dict):
        # the SDK unwraps {"error": {...}} but some proxies do not
        inner = body.get("error", body)
        if isinstance(inner, dict) and inner.get("message"):
            return str(inner["message"])
    return "AI request failed"


class CompletionClient:
    def __init__(
        self,
        client: Any = None,
        *,
        model: str = DEFAULT_MODEL,
        api_key: str = "",
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        max_retries: int = 0,
    ) -> None:
        self.model = model
        self._client = client or OpenAI(
            api_key=api_key or "missing",
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
        )

    def complete(self, ordered_turns: Sequence[ChatMessage]) -> str:
        messages = [t.model_dump() for t in ordered_turns]
        try:
            response = self._client.chat.completions.create(model=self.model, messages=messages)
        except openai.APIError as exc:
            raise CompletionFailed(_error_reason(exc)) from exc

        choices = getattr(response, "choices", None) or []
        if not choices:
            raise CompletionFailed("completion payload has no choices")
        message = getattr(choices[0], "message", None)
        content = getattr(message, "content", None)
        if not isinstance(content, str):
            raise CompletionFailed("completion payload has no message content")
        logger.debug("completion model=%s turns=%d chars=%d", self.model, len(messages), len(content))
        return content


__all__ = ["CompletionClient", "build_context", "DEFAULT_SYSTEM_PROMPT", "DEFAULT_MODEL"]
