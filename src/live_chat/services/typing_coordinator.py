from __future__ import annotations

import logging

from live_chat.application.ports.listener import FrameSender
from live_chat.application.ports.scheduler import LoopScheduler, Scheduler, TimerHandle
from live_chat.config import settings
from live_chat.infrastructure.ws.protocol import Typing
from live_chat.services.conversation_store import ConversationStore

logger = logging.getLogger(__name__)


class TypingCoordinator:
    """Debounces local keystrokes into ``typing`` frames for one conversation.

    The first keystroke sends ``isTyping=true`` right away; further
    keystrokes only push the idle deadline back. When the deadline passes
    ``isTyping=false`` goes out once.
    """

    def __init__(
        self,
        sender: FrameSender,
        store: ConversationStore,
        *,
        scheduler: Scheduler | None = None,
        idle_seconds: float | None = None,
    ) -> None:
        self._sender = sender
        self._store = store
        self._scheduler = scheduler or LoopScheduler()
        self._idle_seconds = settings.CHAT_TYPING_IDLE_SECONDS if idle_seconds is None else idle_seconds
        self._typing = False
        self._timer: TimerHandle | None = None

    @property
    def is_typing(self) -> bool:
        return self._typing

    @property
    def conversation_key(self) -> str:
        return self._store.conversation_key

    def on_input(self) -> None:
        if not self._sender.is_open:
            return
        if not self._typing:
            self._typing = True
            self._send(True)
        self._rearm()

    def on_message_sent(self) -> None:
        self._cancel_timer()
        self._typing = False
        self._send(False)

    def cancel(self) -> None:
        """Drop local typing state without telling the peer."""
        self._cancel_timer()
        self._typing = False

    def set_remote_typing(self, is_typing: bool) -> None:
        self._store.set_remote_typing(is_typing)

    def _on_idle(self) -> None:
        self._timer = None
        if not self._typing:
            return
        self._typing = False
        self._send(False)

    def _rearm(self) -> None:
        self._cancel_timer()
        self._timer = self._scheduler.call_later(self._idle_seconds, self._on_idle)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _send(self, is_typing: bool) -> None:
        logger.debug("Typing %s for %s", is_typing, self.conversation_key)
        self._sender.send(Typing(client_id=self.conversation_key, is_typing=is_typing))
