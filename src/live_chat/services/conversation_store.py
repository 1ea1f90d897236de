"""In-memory message log and typing state for one conversation."""
from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence
from datetime import datetime, timezone
from typing import overload

from live_chat.domain.entities.message import Message
from live_chat.domain.value_objects.enums import SenderType
from live_chat.domain.value_objects.ids import ConversationKey

logger = logging.getLogger(__name__)


class MessageView(Sequence[Message]):
    """Read-only live view over a store's log; iterating twice starts over."""

    __slots__ = ("_log",)

    def __init__(self, log: list[Message]) -> None:
        self._log = log

    @overload
    def __getitem__(self, index: int) -> Message: ...

    @overload
    def __getitem__(self, index: slice) -> Sequence[Message]: ...

    def __getitem__(self, index: int | slice) -> Message | Sequence[Message]:
        if isinstance(index, slice):
            return tuple(self._log[index])
        return self._log[index]

    def __len__(self) -> int:
        return len(self._log)

    def __iter__(self) -> Iterator[Message]:
        return iter(self._log)

    def __repr__(self) -> str:
        return f"MessageView(len={len(self._log)})"


class ConversationStore:
    """Append-only, id-deduplicated message log.

    History merged from the REST collaborator is spliced in front of
    whatever has arrived live, so the final log does not depend on which
    of the two paths resolves first.
    """

    def __init__(
        self,
        conversation_key: str,
        *,
        local_sender: SenderType,
        focused: bool = False,
    ) -> None:
        self.conversation_key = ConversationKey(conversation_key)
        self.local_sender = local_sender
        self.focused = focused
        self.unread_count = 0
        self.last_message_at: datetime | None = None
        self.remote_typing = False
        self.history_loaded = False

        self._log: list[Message] = []
        self._ids: set[str] = set()

    def __len__(self) -> int:
        return len(self._log)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._ids

    def __repr__(self) -> str:
        return (
            f"ConversationStore(key={self.conversation_key!r}, messages={len(self._log)}, "
            f"unread={self.unread_count})"
        )

    @property
    def messages(self) -> MessageView:
        return MessageView(self._log)

    @property
    def last_message(self) -> Message | None:
        return self._log[-1] if self._log else None

    def append(self, message: Message) -> bool:
        """Insert at the tail unless the id is already present."""
        self.remote_typing = False
        if message.id in self._ids:
            logger.debug("Duplicate message %s in %s ignored", message.id, self.conversation_key)
            return False

        self._log.append(message)
        self._ids.add(message.id)
        self._touch(message.created_at)
        if message.sender_type != self.local_sender and not self.focused:
            self.unread_count += 1
        return True

    def merge_history(self, messages: Iterable[Message]) -> int:
        """Splice fetched history before the live tail. Returns how many were added."""
        if self.history_loaded:
            logger.debug("History for %s merged more than once", self.conversation_key)

        prefix: list[Message] = []
        for message in messages:
            if message.id in self._ids:
                continue
            self._ids.add(message.id)
            prefix.append(message)
            self._touch(message.created_at)

        self._log[:0] = prefix
        self.history_loaded = True
        return len(prefix)

    def mark_read(self) -> None:
        self.unread_count = 0

    def set_remote_typing(self, is_typing: bool) -> None:
        self.remote_typing = is_typing

    def focus(self) -> None:
        self.focused = True

    def blur(self) -> None:
        self.focused = False

    def _touch(self, ts: datetime) -> None:
        if self.last_message_at is None or _after(ts, self.last_message_at):
            self.last_message_at = ts


def _after(a: datetime, b: datetime) -> bool:
    return _as_utc(a) > _as_utc(b)


def _as_utc(ts: datetime) -> datetime:
    # REST rows are naive UTC, live frames may carry any offset
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)
