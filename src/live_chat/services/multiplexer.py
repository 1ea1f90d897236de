"""Operator-side fan-out of one shared connection to many conversations."""
from __future__ import annotations

import logging
from collections import OrderedDict
from collections.abc import Iterable

from live_chat.application.exceptions import ChatError
from live_chat.application.ports.scheduler import Scheduler
from live_chat.domain.entities.conversation import ConversationSummary
from live_chat.domain.value_objects.enums import ErrorKind, SenderType
from live_chat.infrastructure.ws.manager import ConnectionManager
from live_chat.infrastructure.ws.protocol import (
    ChatMessage,
    ClientFrame,
    ConnectedFrame,
    ErrorFrame,
    MessageFrame,
    ServerFrame,
    TypingFrame,
)
from live_chat.services.conversation_store import ConversationStore
from live_chat.services.typing_coordinator import TypingCoordinator

logger = logging.getLogger(__name__)


class _SharedSender:
    """FrameSender handed to typing coordinators; writes go through the multiplexer."""

    def __init__(self, multiplexer: ConversationMultiplexer) -> None:
        self._multiplexer = multiplexer

    @property
    def is_open(self) -> bool:
        return self._multiplexer.is_open

    def send(self, frame: ClientFrame) -> None:
        self._multiplexer.send_frame(frame)


class ConversationMultiplexer:
    """Routes inbound frames by ``clientId`` and owns the only writer handle.

    Implements application.ports.listener.ConnectionListener.
    """

    def __init__(
        self,
        manager: ConnectionManager,
        *,
        scheduler: Scheduler | None = None,
        typing_idle_seconds: float | None = None,
    ) -> None:
        self._manager = manager
        self._scheduler = scheduler
        self._typing_idle_seconds = typing_idle_seconds
        self._sender = _SharedSender(self)

        self._stores: dict[str, ConversationStore] = {}
        self._typing: dict[str, TypingCoordinator] = {}
        # most recent activity at the end
        self._recency: OrderedDict[str, None] = OrderedDict()
        self._focused: str | None = None

    # -- subscription --------------------------------------------------------

    def attach(self) -> None:
        self._manager.subscribe(self)

    def detach(self) -> None:
        self._manager.unsubscribe(self)

    # -- conversations -------------------------------------------------------

    def __contains__(self, conversation_key: object) -> bool:
        return conversation_key in self._stores

    def __len__(self) -> int:
        return len(self._stores)

    @property
    def focused_key(self) -> str | None:
        return self._focused

    def store(self, conversation_key: str) -> ConversationStore:
        """Return the store for a key, creating it on first reference."""
        store = self._stores.get(conversation_key)
        if store is None:
            store = ConversationStore(
                conversation_key,
                local_sender=SenderType.OPERATOR,
                focused=conversation_key == self._focused,
            )
            self._stores[conversation_key] = store
            self._typing[conversation_key] = TypingCoordinator(
                self._sender,
                store,
                scheduler=self._scheduler,
                idle_seconds=self._typing_idle_seconds,
            )
            self._recency[conversation_key] = None
            self._recency.move_to_end(conversation_key, last=False)
            logger.debug("Conversation %s created", conversation_key)
        return store

    def typing(self, conversation_key: str) -> TypingCoordinator:
        self.store(conversation_key)
        return self._typing[conversation_key]

    def recent(self) -> list[ConversationStore]:
        """Stores ordered most-recently-active first."""
        return [self._stores[key] for key in reversed(self._recency)]

    def seed(self, summaries: Iterable[ConversationSummary]) -> None:
        """Load the operator listing, which arrives most recent first."""
        for summary in reversed(list(summaries)):
            store = self.store(summary.client_id)
            store.unread_count = 0 if store.focused else summary.unread_count
            if summary.last_message_at is not None and store.last_message_at is None:
                store.last_message_at = summary.last_message_at
            self._recency.move_to_end(summary.client_id)

    def focus(self, conversation_key: str) -> ConversationStore:
        if self._focused is not None and self._focused in self._stores:
            self._stores[self._focused].blur()
        self._focused = conversation_key
        store = self.store(conversation_key)
        store.focus()
        return store

    def close_view(self, conversation_key: str) -> None:
        """Stop local typing for a view; the shared connection stays up."""
        typing = self._typing.get(conversation_key)
        if typing is not None:
            typing.cancel()
        store = self._stores.get(conversation_key)
        if store is not None:
            store.blur()
        if self._focused == conversation_key:
            self._focused = None

    def cancel_typing(self) -> None:
        for typing in self._typing.values():
            typing.cancel()

    # -- outbound ------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._manager.is_open

    def send(self, conversation_key: str, text: str) -> bool:
        text = text.strip()
        if not text:
            return False
        if not self._manager.is_open:
            logger.debug("Not connected, message to %s dropped", conversation_key)
            return False
        self.send_frame(ChatMessage(client_id=conversation_key, text=text))
        self.typing(conversation_key).on_message_sent()
        return True

    def send_frame(self, frame: ClientFrame) -> None:
        self._manager.send(frame)

    # -- ConnectionListener --------------------------------------------------

    def on_open(self) -> None:
        logger.info("Operator connection open (%d conversations)", len(self._stores))

    def on_frame(self, frame: ServerFrame) -> None:
        if isinstance(frame, MessageFrame):
            if frame.client_id is None:
                logger.warning("Message %s carries no clientId, dropped", frame.id)
                return
            if self.store(frame.client_id).append(frame.to_message()):
                self._recency.move_to_end(frame.client_id)
        elif isinstance(frame, TypingFrame):
            if frame.client_id is None:
                logger.debug("Typing frame without clientId ignored")
                return
            self.typing(frame.client_id).set_remote_typing(frame.is_typing)
        elif isinstance(frame, ErrorFrame):
            logger.warning("Server reported error: %s", frame.message)
        elif isinstance(frame, ConnectedFrame):
            logger.debug("Server greeted %s (%s)", frame.user_id, frame.role)

    def on_close(self, reason: str) -> None:
        logger.info("Operator connection closed: %s", reason)

    def on_error(self, kind: ErrorKind, error: ChatError) -> None:
        logger.warning("Operator connection error %s: %s", kind, error.detail)
