from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from live_chat.domain.value_objects.enums import SenderType


@dataclass(frozen=True, slots=True)
class Message:
    id: str
    text: str
    sender_type: SenderType
    created_at: datetime
