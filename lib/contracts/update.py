"""Telegram update models consumed by the chat adapter.

Only the fields the relay reads are declared; everything else in the Bot API
payload is ignored.
"""
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class TelegramUser(_Lenient):
    id: Union[int, str]
    username: Optional[str] = None


class TelegramChat(_Lenient):
    id: Union[int, str]


class TelegramMessage(_Lenient):
    message_id: Optional[int] = None
    chat: TelegramChat
    sender: TelegramUser = Field(alias="from")
    text: Optional[str] = None


class TelegramUpdate(_Lenient):
    update_id: Optional[int] = None
    message: Optional[TelegramMessage] = None


class InboundMessage(BaseModel):
    """Normalised inbound message handed to the orchestrator."""

    update_id: Optional[int] = None
    chat_id: str
    user_id: str
    username: str = ""
    text: str
