"""WebSocket frame models.

Field names are snake_case in Python and camelCase on the wire.
"""
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from live_chat.domain.entities.message import Message
from live_chat.domain.value_objects.enums import SenderType


class _Frame(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        coerce_numbers_to_str=True,
        frozen=True,
    )


# Client → Server


class ChatMessage(_Frame):
    type: Literal["chat_message"] = "chat_message"
    client_id: str = Field(alias="clientId")
    text: str


class Typing(_Frame):
    type: Literal["typing"] = "typing"
    client_id: str | None = Field(default=None, alias="clientId")
    is_typing: bool = Field(alias="isTyping")


# Server → Client


class MessageFrame(_Frame):
    """Live broadcast (``chat_message``) or the sender's own echo (``message_sent``)."""

    type: Literal["chat_message", "message_sent"]
    id: str
    text: str
    sender_type: SenderType = Field(alias="senderType")
    created_at: datetime = Field(alias="createdAt")
    client_id: str | None = Field(default=None, alias="clientId")
    admin_id: str | None = Field(default=None, alias="adminId")
    is_read: bool | None = Field(default=None, alias="isRead")

    def to_message(self) -> Message:
        return Message(
            id=self.id,
            text=self.text,
            sender_type=self.sender_type,
            created_at=self.created_at,
        )


class TypingFrame(_Frame):
    type: Literal["typing"]
    is_typing: bool = Field(alias="isTyping")
    client_id: str | None = Field(default=None, alias="clientId")


class ConnectedFrame(_Frame):
    type: Literal["connected"]
    user_id: str = Field(alias="userId")
    role: str


class ErrorFrame(_Frame):
    type: Literal["error"]
    message: str = ""


ServerFrame = Annotated[
    Union[MessageFrame, TypingFrame, ConnectedFrame, ErrorFrame],
    Field(discriminator="type"),
]

ClientFrame = Annotated[
    Union[ChatMessage, Typing],
    Field(discriminator="type"),
]

OutboundFrame = Union[ChatMessage, Typing, MessageFrame, TypingFrame, ConnectedFrame, ErrorFrame]
