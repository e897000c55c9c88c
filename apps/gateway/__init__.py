"""Telegram delivery gateway."""

from __future__ import annotations

from typing import Optional

import httpx

from lib.contracts.errors import DeliveryFailed
from lib.telemetry.logger import get_logger

logger = get_logger(__name__)

TELEGRAM_MESSAGE_LIMIT = 4096


def truncate_for_delivery(text: str, limit: int = TELEGRAM_MESSAGE_LIMIT) -> str:
    """Cut ``text`` to ``limit`` UTF-16 code units, the unit Telegram counts.

    A surrogate pair straddling the cut is dropped whole.
    """

    encoded = text.encode("utf-16-le", errors="surrogatepass")
    if len(encoded) <= limit * 2:
        return text
    return encoded[: limit * 2].decode("utf-16-le", errors="ignore")


class MessagingGateway:
    """Send text replies through the Bot API ``sendMessage`` method.

    Text longer than ``max_length`` is cut at this boundary only; callers
    keep and persist the full text.
    """

    def __init__(
        self,
        bot_token: str,
        *,
        api_base: str = "https://api.telegram.org",
        max_length: int = TELEGRAM_MESSAGE_LIMIT,
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.max_length = max_length
        self._url = f"{api_base.rstrip('/')}/bot{bot_token}/sendMessage"
        self._client = client or httpx.Client(timeout=timeout)

    def deliver(self, chat_id: str, text: str) -> None:
        payload = {"chat_id": chat_id, "text": truncate_for_delivery(text, self.max_length)}
        try:
            response = self._client.post(self._url, json=payload)
        except httpx.HTTPError as exc:
            raise DeliveryFailed(None, type(exc).__name__) from exc
        if not response.is_success:
            raise DeliveryFailed(response.status_code, response.reason_phrase)
        logger.debug("delivered %d chars to chat %s", len(payload["text"]), chat_id)

    def close(self) -> None:
        self._client.close()


__all__ = ["MessagingGateway", "truncate_for_delivery", "TELEGRAM_MESSAGE_LIMIT"]
