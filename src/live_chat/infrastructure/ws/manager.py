"""Client-side WebSocket connection manager."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from urllib.parse import urlencode, urlsplit, urlunsplit

from live_chat.application.exceptions import (
    AuthRejected,
    ChatError,
    InvalidTransition,
    MalformedFrame,
    TransportError,
)
from live_chat.application.ports.clock import Clock, SystemClock
from live_chat.application.ports.listener import ConnectionListener
from live_chat.application.ports.scheduler import LoopScheduler, Scheduler, TimerHandle
from live_chat.application.ports.transport import Transport, TransportConnection
from live_chat.config import settings
from live_chat.domain.value_objects.enums import ConnectionState, ErrorKind
from live_chat.infrastructure.ws import codec
from live_chat.infrastructure.ws.protocol import ClientFrame, ConnectedFrame

logger = logging.getLogger(__name__)

_S = ConnectionState

_TRANSITIONS: dict[ConnectionState, frozenset[ConnectionState]] = {
    _S.DISCONNECTED: frozenset({_S.CONNECTING}),
    _S.CONNECTING: frozenset({_S.OPEN, _S.RECONNECTING, _S.DISCONNECTED, _S.CLOSING}),
    _S.OPEN: frozenset({_S.RECONNECTING, _S.DISCONNECTED, _S.CLOSING}),
    _S.RECONNECTING: frozenset({_S.CONNECTING, _S.CLOSING}),
    _S.CLOSING: frozenset({_S.DISCONNECTED}),
}


@dataclass(slots=True)
class ConnectionSession:
    state: ConnectionState = ConnectionState.DISCONNECTED
    last_opened_at: datetime | None = None
    reconnect_attempt: int = 0


def with_token(endpoint: str, token: str) -> str:
    """Append the bearer credential as the ``token`` query parameter."""
    parts = urlsplit(endpoint)
    extra = urlencode({"token": token})
    query = f"{parts.query}&{extra}" if parts.query else extra
    return urlunsplit(parts._replace(query=query))


class ConnectionManager:
    """Owns one transport session and its reconnection policy.

    ``send`` never queues while the connection is not open: frames are
    dropped and buffering is left to the caller.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        auto_reconnect: bool,
        reconnect_delay: float | None = None,
        scheduler: Scheduler | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._transport = transport
        self._auto_reconnect = auto_reconnect
        self._reconnect_delay = (
            settings.CHAT_RECONNECT_DELAY_SECONDS if reconnect_delay is None else reconnect_delay
        )
        self._scheduler = scheduler or LoopScheduler()
        self._clock = clock or SystemClock()

        self.session = ConnectionSession()
        self._listeners: list[ConnectionListener] = []

        self._endpoint: str | None = None
        self._token: str | None = None
        self._connection: TransportConnection | None = None
        self._outbox: asyncio.Queue[str] | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._writer_task: asyncio.Task[None] | None = None
        self._reconnect_handle: TimerHandle | None = None
        self._reconnect_task: asyncio.Task[None] | None = None
        # resolves to True on the greeting, False on a local close, or the loss error
        self._ready: asyncio.Future[ChatError | bool] | None = None

    # -- state ---------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self.session.state

    @property
    def is_open(self) -> bool:
        return self.session.state == ConnectionState.OPEN

    @property
    def auto_reconnect(self) -> bool:
        return self._auto_reconnect

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_handle is not None

    def _transition(self, target: ConnectionState) -> None:
        current = self.session.state
        if target not in _TRANSITIONS[current]:
            raise InvalidTransition(f"{current} -> {target}")
        logger.debug("Connection state %s -> %s", current, target)
        self.session.state = target

    # -- subscriptions -------------------------------------------------------

    def subscribe(self, listener: ConnectionListener) -> None:
        if any(existing is listener for existing in self._listeners):
            return
        self._listeners.append(listener)

    def unsubscribe(self, listener: ConnectionListener) -> None:
        self._listeners = [existing for existing in self._listeners if existing is not listener]

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    # -- lifecycle -----------------------------------------------------------

    async def open(self, endpoint: str, token: str) -> None:
        if self.session.state not in (ConnectionState.DISCONNECTED, ConnectionState.RECONNECTING):
            logger.warning("open() ignored in state %s", self.session.state)
            return

        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None
        self._endpoint = endpoint
        self._token = token
        self._transition(ConnectionState.CONNECTING)
        self._ready = None

        try:
            connection = await self._transport.connect(with_token(endpoint, token))
        except AuthRejected as exc:
            logger.warning("Chat connection rejected: %s", exc.detail)
            if self.session.state == ConnectionState.CONNECTING:
                self._transition(ConnectionState.DISCONNECTED)
            self._emit_error(exc)
            raise
        except TransportError as exc:
            logger.warning("Chat connection failed: %s", exc.detail)
            self._emit_error(exc)
            if self.session.state != ConnectionState.CONNECTING:
                # close() won the race while the handshake was in flight
                return
            if self._auto_reconnect:
                self._transition(ConnectionState.RECONNECTING)
                self._schedule_reconnect()
                return
            self._transition(ConnectionState.DISCONNECTED)
            raise

        if self.session.state != ConnectionState.CONNECTING:
            # close() won the race while the handshake was in flight
            await connection.close()
            return

        self._connection = connection
        self._outbox = asyncio.Queue()
        self._ready = asyncio.get_running_loop().create_future()
        self._transition(ConnectionState.OPEN)
        self.session.reconnect_attempt = 0
        self.session.last_opened_at = self._clock.now()
        self._reader_task = asyncio.create_task(self._read_loop(connection), name="chat-ws-reader")
        self._writer_task = asyncio.create_task(
            self._write_loop(connection, self._outbox), name="chat-ws-writer",
        )
        logger.info("Chat connection open: %s", endpoint)
        self._emit("on_open")

    def send(self, frame: ClientFrame) -> None:
        if self.session.state != ConnectionState.OPEN or self._outbox is None:
            logger.debug("Dropping %s frame in state %s", frame.type, self.session.state)
            return
        self._outbox.put_nowait(codec.encode(frame))

    async def wait_ready(self, timeout: float | None = None) -> bool:
        """Wait for the server's ``connected`` greeting on the current connection.

        The backend accepts the socket before checking the token and rejects
        with a 1008 close, so a successful ``open`` is not yet an accepted
        session. Returns ``False`` when ``close()`` ran first or no connection
        was made; raises the loss error if the server drops us before greeting.
        """
        ready = self._ready
        if ready is None:
            return False
        try:
            outcome = await asyncio.wait_for(asyncio.shield(ready), timeout)
        except TimeoutError as exc:
            raise TransportError(f"no greeting from server within {timeout:.1f}s") from exc
        if isinstance(outcome, ChatError):
            raise outcome
        return outcome

    async def close(self) -> None:
        state = self.session.state
        if state in (ConnectionState.DISCONNECTED, ConnectionState.CLOSING):
            return

        self._transition(ConnectionState.CLOSING)
        self._cancel_reconnect()
        self._resolve_ready(False)
        await self._teardown()
        self._transition(ConnectionState.DISCONNECTED)
        logger.info("Chat connection closed by client")
        self._emit("on_close", "closed by client")

    # -- internals -----------------------------------------------------------

    async def _teardown(self) -> None:
        current = asyncio.current_task()
        tasks = [t for t in (self._reader_task, self._writer_task) if t is not None]
        for task in tasks:
            if task is not current:
                task.cancel()
        for task in tasks:
            if task is current:
                continue
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._reader_task = None
        self._writer_task = None
        self._outbox = None

        connection, self._connection = self._connection, None
        if connection is not None:
            try:
                await connection.close()
            except ChatError as exc:
                logger.debug("Ignoring error while closing transport: %s", exc.detail)

    async def _read_loop(self, connection: TransportConnection) -> None:
        while True:
            try:
                raw = await connection.recv()
            except ChatError as exc:
                await self._on_connection_lost(connection, exc)
                return

            try:
                frame = codec.decode(raw)
            except MalformedFrame as exc:
                logger.warning("Discarding malformed frame: %s", exc.detail)
                self._emit_error(exc)
                continue

            if isinstance(frame, ConnectedFrame):
                self._resolve_ready(True)
            self._emit("on_frame", frame)

    async def _write_loop(self, connection: TransportConnection, outbox: asyncio.Queue[str]) -> None:
        while True:
            raw = await outbox.get()
            try:
                await connection.send(raw)
            except ChatError as exc:
                await self._on_connection_lost(connection, exc)
                return

    async def _on_connection_lost(self, connection: TransportConnection, exc: ChatError) -> None:
        if connection is not self._connection or self.session.state != ConnectionState.OPEN:
            return

        auth_rejected = isinstance(exc, AuthRejected)
        if auth_rejected:
            self._transition(ConnectionState.DISCONNECTED)
        elif self._auto_reconnect:
            self._transition(ConnectionState.RECONNECTING)
        else:
            self._transition(ConnectionState.DISCONNECTED)

        logger.warning("Chat connection lost: %s (state=%s)", exc.detail, self.session.state)
        await self._teardown()

        self._emit_error(exc)
        self._emit("on_close", exc.detail or "connection lost")
        self._resolve_ready(exc)

        if self.session.state == ConnectionState.RECONNECTING:
            self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            return
        self.session.reconnect_attempt += 1
        logger.info(
            "Reconnecting in %.1fs (attempt %d)",
            self._reconnect_delay,
            self.session.reconnect_attempt,
        )
        self._reconnect_handle = self._scheduler.call_later(self._reconnect_delay, self._fire_reconnect)

    def _fire_reconnect(self) -> None:
        self._reconnect_handle = None
        if self.session.state != ConnectionState.RECONNECTING:
            return
        self._reconnect_task = asyncio.get_running_loop().create_task(
            self._reconnect(), name="chat-ws-reconnect",
        )

    async def _reconnect(self) -> None:
        if self._endpoint is None or self._token is None:
            logger.error("Reconnect fired before any open(), nothing to reconnect")
            return
        try:
            await self.open(self._endpoint, self._token)
        except AuthRejected:
            logger.error("Reconnect rejected, giving up")

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None
        task, self._reconnect_task = self._reconnect_task, None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

    def _resolve_ready(self, outcome: ChatError | bool) -> None:
        if self._ready is not None and not self._ready.done():
            self._ready.set_result(outcome)

    def _emit_error(self, exc: ChatError) -> None:
        kind = exc.kind or ErrorKind.TRANSPORT_ERROR
        self._emit("on_error", kind, exc)

    def _emit(self, event: str, *args: object) -> None:
        for listener in list(self._listeners):
            try:
                getattr(listener, event)(*args)
            except Exception:
                logger.exception("Chat listener %r failed in %s", listener, event)

