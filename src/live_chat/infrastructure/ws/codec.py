from __future__ import annotations

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from live_chat.application.exceptions import MalformedFrame
from live_chat.infrastructure.ws.protocol import ClientFrame, OutboundFrame, ServerFrame

_server_frames: TypeAdapter[ServerFrame] = TypeAdapter(ServerFrame)
_client_frames: TypeAdapter[ClientFrame] = TypeAdapter(ClientFrame)


def encode(frame: OutboundFrame) -> str:
    return frame.model_dump_json(by_alias=True, exclude_none=True)


def decode(raw: str | bytes) -> ServerFrame:
    """Decode a server → client frame or raise ``MalformedFrame``."""
    try:
        return _server_frames.validate_json(raw)
    except PydanticValidationError as exc:
        raise MalformedFrame(_describe(exc)) from exc


def decode_client_frame(raw: str | bytes) -> ClientFrame:
    """Decode a client → server frame or raise ``MalformedFrame``."""
    try:
        return _client_frames.validate_json(raw)
    except PydanticValidationError as exc:
        raise MalformedFrame(_describe(exc)) from exc


def _describe(exc: PydanticValidationError) -> str:
    first = exc.errors()[0]
    loc = ".".join(str(part) for part in first["loc"])
    return f"{first['type']} at {loc or '<root>'}: {first['msg']}"
