"""In-memory stand-in for the backend's ``chat_messages`` table."""
from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from live_chat.application.ports.clock import Clock, SystemClock
from live_chat.domain.value_objects.enums import SenderType


@dataclass(slots=True)
class StoredMessage:
    id: int
    client_id: str
    admin_id: str | None
    message: str
    sender_type: SenderType
    is_read: bool
    created_at: datetime

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "client_id": self.client_id,
            "admin_id": self.admin_id,
            "message": self.message,
            "sender_type": self.sender_type.value,
            "is_read": self.is_read,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(slots=True)
class ClientProfile:
    name: str | None = None
    email: str | None = None
    phone: str | None = None


@dataclass
class InMemoryChatRepository:
    clock: Clock = field(default_factory=SystemClock)
    _messages: list[StoredMessage] = field(default_factory=list)
    _profiles: dict[str, ClientProfile] = field(default_factory=dict)
    _ids: itertools.count = field(default_factory=lambda: itertools.count(1))

    def register_client(self, client_id: str, name: str | None = None, email: str | None = None, phone: str | None = None) -> None:
        self._profiles[client_id] = ClientProfile(name=name, email=email, phone=phone)

    def save_message(
        self,
        client_id: str,
        admin_id: str | None,
        message: str,
        sender_type: SenderType,
    ) -> StoredMessage:
        stored = StoredMessage(
            id=next(self._ids),
            client_id=client_id,
            admin_id=admin_id,
            message=message,
            sender_type=sender_type,
            is_read=False,
            created_at=self.clock.now(),
        )
        self._messages.append(stored)
        return stored

    def history(self, client_id: str | None, limit: int = 50) -> list[StoredMessage]:
        """Latest ``limit`` messages, oldest first."""
        rows = [m for m in self._messages if client_id is None or m.client_id == client_id]
        return rows[-limit:] if limit > 0 else []

    def conversations(self) -> list[dict[str, Any]]:
        by_client: dict[str, list[StoredMessage]] = {}
        for m in self._messages:
            by_client.setdefault(m.client_id, []).append(m)

        rows = []
        for client_id, messages in by_client.items():
            profile = self._profiles.get(client_id, ClientProfile())
            rows.append({
                "client_id": client_id,
                "client_name": profile.name,
                "client_email": profile.email,
                "client_phone": profile.phone,
                "last_message_at": max(m.created_at for m in messages),
                "unread_count": sum(
                    1 for m in messages if not m.is_read and m.sender_type == SenderType.CUSTOMER
                ),
            })
        rows.sort(key=lambda r: r["last_message_at"], reverse=True)
        for row in rows:
            row["last_message_at"] = row["last_message_at"].isoformat()
        return rows

    def mark_read(self, client_id: str, sender_type: SenderType) -> int:
        updated = 0
        for m in self._messages:
            if m.client_id == client_id and m.sender_type == sender_type and not m.is_read:
                m.is_read = True
                updated += 1
        return updated

    def delete_history(self, client_id: str) -> int:
        before = len(self._messages)
        self._messages = [m for m in self._messages if m.client_id != client_id]
        return before - len(self._messages)
