"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import itertools
import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import pytest

from live_chat.application.dto.principal import Principal
from live_chat.application.exceptions import ChatError, HistoryFetchFailed, TransportError
from live_chat.domain.entities.conversation import ConversationSummary
from live_chat.domain.entities.message import Message
from live_chat.domain.value_objects.enums import ErrorKind, SenderType

_BASE_TIME = datetime(2026, 1, 5, 14, 0, tzinfo=timezone.utc)
_ids = itertools.count(1)


@pytest.fixture
def customer_principal() -> Principal:
    return Principal(user_id="7", sender_type=SenderType.CUSTOMER, client_id="42")


@pytest.fixture
def operator_principal() -> Principal:
    return Principal(user_id="1", sender_type=SenderType.OPERATOR)


def make_message(
    *,
    message_id: str | None = None,
    text: str = "hello",
    sender_type: SenderType = SenderType.CUSTOMER,
    offset: int = 0,
) -> Message:
    return Message(
        id=message_id or str(next(_ids)),
        text=text,
        sender_type=sender_type,
        created_at=_BASE_TIME + timedelta(seconds=offset),
    )


def message_frame(
    *,
    message_id: str,
    text: str = "hello",
    sender_type: SenderType = SenderType.CUSTOMER,
    client_id: str | None = "42",
    frame_type: str = "chat_message",
    offset: int = 0,
) -> str:
    payload: dict[str, Any] = {
        "type": frame_type,
        "id": message_id,
        "text": text,
        "senderType": sender_type.value,
        "createdAt": (_BASE_TIME + timedelta(seconds=offset)).isoformat(),
    }
    if client_id is not None:
        payload["clientId"] = client_id
    return json.dumps(payload)


def connected_frame(user_id: str = "7", role: str = "client") -> str:
    return json.dumps({"type": "connected", "userId": user_id, "role": role})


def typing_frame(is_typing: bool, client_id: str | None = "42") -> str:
    payload: dict[str, Any] = {"type": "typing", "isTyping": is_typing}
    if client_id is not None:
        payload["clientId"] = client_id
    return json.dumps(payload)


async def settle(rounds: int = 10) -> None:
    """Let reader/writer tasks run until they block again."""
    for _ in range(rounds):
        await asyncio.sleep(0)


# -- scheduler -----------------------------------------------------------------


@dataclass(eq=False)
class FakeTimer:
    when: float
    callback: Callable[[], None]
    cancelled: bool = False
    fired: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class FakeScheduler:
    """Manual clock: nothing fires until ``advance`` passes its deadline."""

    now: float = 0.0
    timers: list[FakeTimer] = field(default_factory=list)

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(when=self.now + delay, callback=callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[FakeTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def advance(self, seconds: float) -> None:
        deadline = self.now + seconds
        while True:
            due = [t for t in self.pending if t.when <= deadline]
            if not due:
                break
            timer = min(due, key=lambda t: t.when)
            self.now = timer.when
            timer.fired = True
            timer.callback()
        self.now = deadline


# -- transport -----------------------------------------------------------------


class FakeConnection:
    def __init__(self) -> None:
        self.sent: list[str] = []
        self.closed = False
        self._inbox: asyncio.Queue[str | ChatError] = asyncio.Queue()

    def feed(self, raw: str) -> None:
        self._inbox.put_nowait(raw)

    def drop(self, error: ChatError | None = None) -> None:
        self._inbox.put_nowait(error or TransportError("connection reset"))

    @property
    def sent_frames(self) -> list[dict[str, Any]]:
        return [json.loads(raw) for raw in self.sent]

    async def recv(self) -> str:
        item = await self._inbox.get()
        if isinstance(item, ChatError):
            raise item
        return item

    async def send(self, raw: str) -> None:
        if self.closed:
            raise TransportError("send on closed connection")
        self.sent.append(raw)

    async def close(self) -> None:
        self.closed = True


@dataclass
class FakeTransport:
    """Hands out FakeConnections; queued ``failures`` are raised first.

    ``greeting`` is queued on every new connection (an error there plays a
    server that accepts, then closes); ``gate`` holds the handshake open
    until it is set.
    """

    failures: list[ChatError] = field(default_factory=list)
    greeting: str | ChatError | None = None
    gate: asyncio.Event | None = None
    urls: list[str] = field(default_factory=list)
    connections: list[FakeConnection] = field(default_factory=list)

    async def connect(self, url: str) -> FakeConnection:
        self.urls.append(url)
        if self.gate is not None:
            await self.gate.wait()
        if self.failures:
            raise self.failures.pop(0)
        connection = FakeConnection()
        if isinstance(self.greeting, ChatError):
            connection.drop(self.greeting)
        elif self.greeting is not None:
            connection.feed(self.greeting)
        self.connections.append(connection)
        return connection

    @property
    def current(self) -> FakeConnection:
        return self.connections[-1]


@dataclass
class RecordingListener:
    events: list[tuple[Any, ...]] = field(default_factory=list)

    def on_open(self) -> None:
        self.events.append(("open",))

    def on_frame(self, frame: Any) -> None:
        self.events.append(("frame", frame))

    def on_close(self, reason: str) -> None:
        self.events.append(("close", reason))

    def on_error(self, kind: ErrorKind, error: ChatError) -> None:
        self.events.append(("error", kind))

    def named(self, name: str) -> list[tuple[Any, ...]]:
        return [e for e in self.events if e[0] == name]

    @property
    def frames(self) -> list[Any]:
        return [e[1] for e in self.named("frame")]

    @property
    def errors(self) -> list[ErrorKind]:
        return [e[1] for e in self.named("error")]


# -- REST collaborator ---------------------------------------------------------


@dataclass
class FakeHistoryGateway:
    history: dict[str, list[Message]] = field(default_factory=dict)
    summaries: list[ConversationSummary] = field(default_factory=list)
    fail: bool = False
    gate: asyncio.Event | None = None
    mark_read_calls: list[tuple[str, SenderType]] = field(default_factory=list)

    async def fetch_history(self, conversation_key: str) -> list[Message]:
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise HistoryFetchFailed("backend unavailable")
        return list(self.history.get(conversation_key, []))

    async def mark_read(self, conversation_key: str, sender_type: SenderType) -> int:
        if self.fail:
            raise HistoryFetchFailed("backend unavailable")
        self.mark_read_calls.append((conversation_key, sender_type))
        return 1

    async def list_conversations(self) -> list[ConversationSummary]:
        if self.fail:
            raise HistoryFetchFailed("backend unavailable")
        return list(self.summaries)


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()
