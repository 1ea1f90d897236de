from __future__ import annotations

import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from live_chat.application.dto.principal import Principal
from live_chat.application.exceptions import AuthRejected, MalformedFrame
from live_chat.devserver.registry import RelayPeer, RelayRegistry
from live_chat.devserver.repository import InMemoryChatRepository
from live_chat.infrastructure.ws import codec
from live_chat.infrastructure.ws.protocol import (
    ChatMessage,
    ConnectedFrame,
    ErrorFrame,
    MessageFrame,
    Typing,
    TypingFrame,
)

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])


async def _authenticate(ws: WebSocket, token: str | None) -> Principal | None:
    if not token:
        return None
    try:
        return await ws.app.state.verifier.verify(token)
    except AuthRejected:
        logger.debug("WS auth failed", exc_info=True)
        return None


@router.websocket("/ws/chat")
async def ws_chat(
    websocket: WebSocket,
    token: str | None = Query(default=None),
) -> None:
    # token is checked after accept; rejects surface as a 1008 close
    await websocket.accept()
    principal = await _authenticate(websocket, token)
    if principal is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Invalid token")
        return

    registry: RelayRegistry = websocket.app.state.registry
    repository: InMemoryChatRepository = websocket.app.state.repository
    peer = registry.register(websocket, principal)
    await registry.send(peer, ConnectedFrame(type="connected", user_id=principal.user_id, role=principal.sender_type.value))

    try:
        await _read_loop(peer, registry, repository)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS error for %s", principal.user_id)
    finally:
        registry.unregister(peer)


async def _read_loop(peer: RelayPeer, registry: RelayRegistry, repository: InMemoryChatRepository) -> None:
    while True:
        raw = await _receive(peer.ws)
        try:
            frame = codec.decode_client_frame(raw)
        except MalformedFrame as exc:
            logger.debug("Bad frame from %s: %s", peer.principal.user_id, exc.detail)
            await registry.send(peer, ErrorFrame(type="error", message="Invalid frame"))
            continue

        try:
            if isinstance(frame, ChatMessage):
                await _relay_message(peer, frame, registry, repository)
            elif isinstance(frame, Typing):
                await _relay_typing(peer, frame, registry)
        except Exception:
            logger.exception("Failed to process %s frame from %s", frame.type, peer.principal.user_id)
            await registry.send(peer, ErrorFrame(type="error", message="Failed to process message"))


async def _receive(ws: WebSocket) -> str:
    message = await ws.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(message.get("code", status.WS_1000_NORMAL_CLOSURE), message.get("reason"))
    text = message.get("text")
    if text is not None:
        return text
    return (message.get("bytes") or b"").decode("utf-8", errors="replace")


async def _relay_message(
    peer: RelayPeer,
    frame: ChatMessage,
    registry: RelayRegistry,
    repository: InMemoryChatRepository,
) -> None:
    principal = peer.principal
    if principal.is_operator:
        client_id = frame.client_id
    else:
        client_id = principal.client_id or frame.client_id

    stored = repository.save_message(
        client_id=client_id,
        admin_id=principal.user_id if principal.is_operator else None,
        message=frame.text,
        sender_type=principal.sender_type,
    )
    broadcast = MessageFrame(
        type="chat_message",
        id=str(stored.id),
        text=stored.message,
        sender_type=stored.sender_type,
        created_at=stored.created_at,
        client_id=stored.client_id,
        admin_id=stored.admin_id,
        is_read=stored.is_read,
    )

    if principal.is_operator:
        await registry.send_to_client(client_id, broadcast)
    else:
        await registry.broadcast_to_operators(broadcast)

    await registry.send(peer, broadcast.model_copy(update={"type": "message_sent"}))


async def _relay_typing(peer: RelayPeer, frame: Typing, registry: RelayRegistry) -> None:
    principal = peer.principal
    if principal.is_operator:
        if frame.client_id:
            await registry.send_to_client(
                frame.client_id, TypingFrame(type="typing", is_typing=frame.is_typing),
            )
    elif principal.client_id is not None:
        await registry.broadcast_to_operators(
            TypingFrame(type="typing", is_typing=frame.is_typing, client_id=principal.client_id),
        )
