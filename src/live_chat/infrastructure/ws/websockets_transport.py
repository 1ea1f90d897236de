"""Transport adapter over the ``websockets`` asyncio client."""
from __future__ import annotations

import logging

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import (
    ConnectionClosed,
    InvalidHandshake,
    InvalidStatus,
    InvalidURI,
)
from websockets.frames import CloseCode

from live_chat.application.exceptions import AuthRejected, TransportError

logger = logging.getLogger(__name__)

_AUTH_STATUSES = frozenset({401, 403})


class WebsocketsConnection:
    """Implements application.ports.transport.TransportConnection."""

    def __init__(self, ws: ClientConnection) -> None:
        self._ws = ws

    async def recv(self) -> str:
        try:
            raw = await self._ws.recv()
        except ConnectionClosed as exc:
            raise _closed_error(exc) from exc
        if isinstance(raw, bytes):
            return raw.decode("utf-8", errors="replace")
        return raw

    async def send(self, raw: str) -> None:
        try:
            await self._ws.send(raw)
        except ConnectionClosed as exc:
            raise _closed_error(exc) from exc

    async def close(self) -> None:
        await self._ws.close()


class WebsocketsTransport:
    """Implements application.ports.transport.Transport."""

    def __init__(self, *, open_timeout: float | None = 10.0) -> None:
        self._open_timeout = open_timeout

    async def connect(self, url: str) -> WebsocketsConnection:
        try:
            ws = await connect(url, open_timeout=self._open_timeout)
        except InvalidStatus as exc:
            status = exc.response.status_code
            if status in _AUTH_STATUSES:
                raise AuthRejected(f"HTTP {status}") from exc
            raise TransportError(f"HTTP {status}") from exc
        except InvalidURI as exc:
            raise TransportError(f"invalid chat endpoint: {exc}") from exc
        except InvalidHandshake as exc:
            raise TransportError(f"handshake failed: {exc}") from exc
        except (OSError, TimeoutError) as exc:
            raise TransportError(f"network error: {exc}") from exc
        logger.debug("WebSocket handshake completed")
        return WebsocketsConnection(ws)


def _closed_error(exc: ConnectionClosed) -> AuthRejected | TransportError:
    rcvd = exc.rcvd
    if rcvd is not None and rcvd.code == CloseCode.POLICY_VIOLATION:
        return AuthRejected(rcvd.reason or "policy violation")
    if rcvd is not None:
        return TransportError(f"closed by server ({int(rcvd.code)}) {rcvd.reason}".strip())
    return TransportError("connection lost")
