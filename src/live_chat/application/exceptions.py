from __future__ import annotations

from live_chat.domain.value_objects.enums import ErrorKind


class ChatError(Exception):
    """Base chat error."""

    kind: ErrorKind | None = None

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class MalformedFrame(ChatError):
    kind = ErrorKind.MALFORMED_FRAME


class TransportError(ChatError):
    kind = ErrorKind.TRANSPORT_ERROR


class AuthRejected(ChatError):
    kind = ErrorKind.AUTH_REJECTED


class HistoryFetchFailed(ChatError):
    kind = ErrorKind.HISTORY_FETCH_FAILED


class InvalidTransition(ChatError):
    pass
