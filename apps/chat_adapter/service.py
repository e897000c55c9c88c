"""Normalisation of raw Telegram webhook bodies.

:func:`parse_update` turns the request body into an
:class:`~lib.contracts.update.InboundMessage`.  An update that carries no
``message`` yields ``None``; anything present but unusable (invalid JSON,
a non-object body, a message without text, chat or sender) raises
:class:`~lib.contracts.errors.MalformedInput`.  Both outcomes are handled as a
no-op by the adapter.
"""

from __future__ import annotations

import json
from typing import Any, Optional, Union

from pydantic import ValidationError

from lib.contracts.errors import MalformedInput
from lib.contracts.update import InboundMessage, TelegramUpdate
from lib.utils.validation import ensure


def _load_body(body: Union[bytes, str, dict, None]) -> Any:
    if body is None:
        return {}
    if isinstance(body, dict):
        return body
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    if not body.strip():
        return {}
    try:
        return json.loads(body)
    except json.JSONDecodeError as exc:
        raise MalformedInput(f"body is not JSON: {exc.msg}") from exc


def parse_update(body: Union[bytes, str, dict, None]) -> Optional[InboundMessage]:
    data = _load_body(body)
    ensure(isinstance(data, dict), "update must be a JSON object", MalformedInput)
    if not data.get("message"):
        return None

    try:
        update = TelegramUpdate.model_validate(data)
    except ValidationError as exc:
        raise MalformedInput(f"unusable message: {exc.error_count()} validation errors") from exc

    msg = update.message
    ensure(msg is not None, "update has no message", MalformedInput)
    ensure(isinstance(msg.text, str), "message has no text", MalformedInput)
    return InboundMessage(
        update_id=update.update_id,
        chat_id=str(msg.chat.id),
        user_id=str(msg.sender.id),
        username=msg.sender.username or "",
        text=msg.text,
    )


__all__ = ["parse_update"]
