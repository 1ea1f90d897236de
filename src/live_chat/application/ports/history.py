from __future__ import annotations

from typing import Protocol

from live_chat.domain.entities.conversation import ConversationSummary
from live_chat.domain.entities.message import Message
from live_chat.domain.value_objects.enums import SenderType


class HistoryGateway(Protocol):
    """REST collaborator for history, read receipts and the operator listing.

    Every method raises ``HistoryFetchFailed`` on failure.
    """

    async def fetch_history(self, conversation_key: str) -> list[Message]: ...

    async def mark_read(self, conversation_key: str, sender_type: SenderType) -> int: ...

    async def list_conversations(self) -> list[ConversationSummary]: ...
