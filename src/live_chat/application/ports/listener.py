from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from live_chat.application.exceptions import ChatError
from live_chat.domain.value_objects.enums import ErrorKind

if TYPE_CHECKING:
    from live_chat.infrastructure.ws.protocol import ClientFrame, ServerFrame


class ConnectionListener(Protocol):
    def on_open(self) -> None: ...

    def on_frame(self, frame: ServerFrame) -> None: ...

    def on_close(self, reason: str) -> None: ...

    def on_error(self, kind: ErrorKind, error: ChatError) -> None: ...


class FrameSender(Protocol):
    """Anything outbound frames can be pushed through."""

    @property
    def is_open(self) -> bool: ...

    def send(self, frame: ClientFrame) -> None: ...
