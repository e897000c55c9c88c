"""Record shapes returned by the store-facing components."""
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["system", "user", "assistant"]


class Account(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    account_id: int
    external_user_id: str
    display_name: str = ""
    usage_count: int = Field(default=0, ge=0)


class ConversationTurn(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    turn_id: int
    chat_id: str
    account_id: int
    text: str
    is_from_user: bool
    created_at: datetime


class ChatMessage(BaseModel):
    """One role-tagged entry of the context sent to the completion backend."""

    role: Role
    content: str
