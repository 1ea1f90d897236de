from __future__ import annotations

from typing import Protocol


class TransportConnection(Protocol):
    """One live bidirectional text channel.

    ``recv`` raises ``TransportError`` when the peer goes away and
    ``AuthRejected`` when the peer closes on a policy violation.
    """

    async def recv(self) -> str: ...

    async def send(self, raw: str) -> None: ...

    async def close(self) -> None: ...


class Transport(Protocol):
    async def connect(self, url: str) -> TransportConnection: ...
