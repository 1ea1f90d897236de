from __future__ import annotations

from dataclasses import dataclass

from live_chat.domain.value_objects.enums import SenderType
from live_chat.domain.value_objects.ids import ConversationKey


@dataclass(frozen=True, slots=True)
class Principal:
    """Caller identity carried in the bearer token claims."""

    user_id: str
    sender_type: SenderType
    client_id: str | None = None

    @property
    def is_operator(self) -> bool:
        return self.sender_type == SenderType.OPERATOR

    @property
    def conversation_key(self) -> ConversationKey:
        """Customer-side conversation key; operators have none of their own."""
        if self.client_id is None:
            raise ValueError(f"principal {self.user_id} carries no clientId")
        return ConversationKey(self.client_id)
