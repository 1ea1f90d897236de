from __future__ import annotations

from enum import StrEnum


class SenderType(StrEnum):
    """Wire values follow the backend's ``sender_type`` column."""

    CUSTOMER = "client"
    OPERATOR = "admin"

    @property
    def remote(self) -> SenderType:
        return SenderType.OPERATOR if self is SenderType.CUSTOMER else SenderType.CUSTOMER


class ConnectionState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    RECONNECTING = "reconnecting"


class ErrorKind(StrEnum):
    MALFORMED_FRAME = "malformed_frame"
    TRANSPORT_ERROR = "transport_error"
    AUTH_REJECTED = "auth_rejected"
    HISTORY_FETCH_FAILED = "history_fetch_failed"
