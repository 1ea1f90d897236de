"""Operator session: the shared connection plus REST-backed views."""
from __future__ import annotations

import logging

from live_chat.application.exceptions import TransportError
from live_chat.application.ports.clock import Clock
from live_chat.application.ports.history import HistoryGateway
from live_chat.application.ports.scheduler import Scheduler
from live_chat.application.ports.transport import Transport
from live_chat.config import settings
from live_chat.domain.value_objects.enums import ConnectionState, SenderType
from live_chat.infrastructure.ws.manager import ConnectionManager
from live_chat.services.conversation_store import ConversationStore
from live_chat.services.multiplexer import ConversationMultiplexer

logger = logging.getLogger(__name__)


class OperatorConsole:
    def __init__(
        self,
        transport: Transport,
        history: HistoryGateway,
        *,
        endpoint: str | None = None,
        scheduler: Scheduler | None = None,
        clock: Clock | None = None,
        greeting_timeout: float | None = None,
    ) -> None:
        self._history = history
        self._endpoint = endpoint or settings.CHAT_WS_URL
        self._greeting_timeout = (
            settings.CHAT_GREETING_TIMEOUT_SECONDS if greeting_timeout is None else greeting_timeout
        )
        self.manager = ConnectionManager(
            transport,
            auto_reconnect=True,
            scheduler=scheduler,
            clock=clock,
        )
        self.multiplexer = ConversationMultiplexer(self.manager, scheduler=scheduler)

    async def start(self, token: str) -> None:
        self.multiplexer.attach()
        await self.manager.open(self._endpoint, token)
        try:
            greeted = await self.manager.wait_ready(self._greeting_timeout)
        except TransportError as exc:
            # reconnect policy owns the socket from here; the listing is REST
            logger.warning("Operator connection not ready: %s", exc.detail)
            greeted = False
        if not greeted and self.manager.state is ConnectionState.DISCONNECTED:
            logger.debug("Operator console stopped before the server greeted")
            return
        await self.refresh_conversations()

    async def refresh_conversations(self) -> int:
        summaries = await self._history.list_conversations()
        self.multiplexer.seed(summaries)
        return len(summaries)

    async def open_view(self, conversation_key: str) -> ConversationStore:
        """Focus a conversation, backfill it and clear its unread counter.

        ``HistoryFetchFailed`` propagates; the view stays focused and keeps
        receiving live messages.
        """
        store = self.multiplexer.focus(conversation_key)
        added = store.merge_history(await self._history.fetch_history(conversation_key))
        await self._history.mark_read(conversation_key, SenderType.CUSTOMER)
        store.mark_read()
        logger.debug("Opened view %s (%d history messages)", conversation_key, added)
        return store

    def close_view(self, conversation_key: str) -> None:
        self.multiplexer.close_view(conversation_key)

    def send(self, conversation_key: str, text: str) -> bool:
        return self.multiplexer.send(conversation_key, text)

    def on_input(self, conversation_key: str) -> None:
        self.multiplexer.typing(conversation_key).on_input()

    async def stop(self) -> None:
        self.multiplexer.cancel_typing()
        self.multiplexer.detach()
        await self.manager.close()
