"""Customer widget session: one connection, one conversation."""
from __future__ import annotations

import asyncio
import logging

from live_chat.application.dto.principal import Principal
from live_chat.application.exceptions import ChatError, HistoryFetchFailed
from live_chat.application.ports.clock import Clock
from live_chat.application.ports.history import HistoryGateway
from live_chat.application.ports.scheduler import Scheduler
from live_chat.application.ports.transport import Transport
from live_chat.config import settings
from live_chat.domain.value_objects.enums import ErrorKind, SenderType
from live_chat.infrastructure.ws.manager import ConnectionManager
from live_chat.infrastructure.ws.protocol import (
    ChatMessage,
    ConnectedFrame,
    ErrorFrame,
    MessageFrame,
    ServerFrame,
    TypingFrame,
)
from live_chat.services.conversation_store import ConversationStore
from live_chat.services.typing_coordinator import TypingCoordinator

logger = logging.getLogger(__name__)


class CustomerChat:
    """The customer never auto-reconnects; reopening the widget calls ``open`` again."""

    def __init__(
        self,
        transport: Transport,
        history: HistoryGateway,
        principal: Principal,
        *,
        endpoint: str | None = None,
        scheduler: Scheduler | None = None,
        clock: Clock | None = None,
        greeting_timeout: float | None = None,
    ) -> None:
        self.principal = principal
        self._history = history
        self._endpoint = endpoint or settings.CHAT_WS_URL
        self._greeting_timeout = (
            settings.CHAT_GREETING_TIMEOUT_SECONDS if greeting_timeout is None else greeting_timeout
        )
        self.manager = ConnectionManager(
            transport,
            auto_reconnect=False,
            scheduler=scheduler,
            clock=clock,
        )
        self.store = ConversationStore(
            principal.conversation_key,
            local_sender=SenderType.CUSTOMER,
        )
        self.typing = TypingCoordinator(self.manager, self.store, scheduler=scheduler)
        self.last_error: ChatError | None = None
        self._history_task: asyncio.Task[int] | None = None
        self._closed = True

    @property
    def is_connected(self) -> bool:
        return self.manager.is_open

    async def open(self, token: str) -> None:
        """Connect, wait for the server greeting, then backfill history.

        ``AuthRejected``/``TransportError`` from the connect step or from a
        drop before the greeting propagate, as does ``HistoryFetchFailed``
        from the backfill; live frames keep flowing into the store either way.
        If ``close()`` runs before the greeting, history is not loaded.
        """
        self._closed = False
        self.manager.subscribe(self)
        self.store.focus()
        await self.manager.open(self._endpoint, token)
        try:
            greeted = await self.manager.wait_ready(self._greeting_timeout)
        except ChatError as exc:
            self.last_error = exc
            await self.manager.close()
            raise
        if not greeted or self._closed:
            logger.debug("Chat for %s closed before the server greeted", self.store.conversation_key)
            return
        await self.load_history()

    async def load_history(self) -> int:
        self._history_task = asyncio.create_task(
            self._fetch_history(), name=f"chat-history-{self.store.conversation_key}",
        )
        try:
            return await self._history_task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            logger.debug("History load for %s cancelled by close()", self.store.conversation_key)
            return 0
        finally:
            self._history_task = None

    async def _fetch_history(self) -> int:
        try:
            messages = await self._history.fetch_history(self.store.conversation_key)
        except HistoryFetchFailed as exc:
            self.last_error = exc
            logger.warning("History backfill for %s failed: %s", self.store.conversation_key, exc.detail)
            raise
        added = self.store.merge_history(messages)
        logger.debug("Merged %d history messages into %s", added, self.store.conversation_key)
        return added

    def send(self, text: str) -> bool:
        text = text.strip()
        if not text or not self.manager.is_open:
            return False
        self.manager.send(ChatMessage(client_id=self.store.conversation_key, text=text))
        self.typing.on_message_sent()
        return True

    def on_input(self) -> None:
        self.typing.on_input()

    async def close(self) -> None:
        self._closed = True
        self.typing.cancel()
        task = self._history_task
        if task is not None and not task.done():
            task.cancel()
        self.store.blur()
        await self.manager.close()
        self.manager.unsubscribe(self)

    # -- ConnectionListener --------------------------------------------------

    def on_open(self) -> None:
        self.last_error = None

    def on_frame(self, frame: ServerFrame) -> None:
        if isinstance(frame, MessageFrame):
            self.store.append(frame.to_message())
        elif isinstance(frame, TypingFrame):
            self.typing.set_remote_typing(frame.is_typing)
        elif isinstance(frame, ErrorFrame):
            logger.warning("Server reported error: %s", frame.message)
        elif isinstance(frame, ConnectedFrame):
            logger.debug("Connected as %s", frame.user_id)

    def on_close(self, reason: str) -> None:
        self.typing.cancel()
        logger.info("Chat closed: %s", reason)

    def on_error(self, kind: ErrorKind, error: ChatError) -> None:
        self.last_error = error
