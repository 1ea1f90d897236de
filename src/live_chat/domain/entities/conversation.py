from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class ConversationSummary:
    """One row of the operator's conversation listing."""

    client_id: str
    client_name: str | None
    client_email: str | None
    client_phone: str | None
    last_message_at: datetime | None
    unread_count: int
