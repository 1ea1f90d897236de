"""Payload models for the chat REST endpoints."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from live_chat.domain.entities.conversation import ConversationSummary
from live_chat.domain.entities.message import Message
from live_chat.domain.value_objects.enums import SenderType


class _Row(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True, extra="ignore")


class HistoryRecord(_Row):
    id: str
    message: str
    sender_type: SenderType
    created_at: datetime
    client_id: str | None = None

    def to_message(self) -> Message:
        return Message(
            id=self.id,
            text=self.message,
            sender_type=self.sender_type,
            created_at=self.created_at,
        )


class ConversationRecord(_Row):
    client_id: str
    client_name: str | None = None
    client_email: str | None = None
    client_phone: str | None = None
    last_message_at: datetime | None = None
    unread_count: int = 0

    def to_summary(self) -> ConversationSummary:
        return ConversationSummary(
            client_id=self.client_id,
            client_name=self.client_name,
            client_email=self.client_email,
            client_phone=self.client_phone,
            last_message_at=self.last_message_at,
            unread_count=self.unread_count,
        )


class MarkReadResult(_Row):
    success: bool
    updated: int = 0
