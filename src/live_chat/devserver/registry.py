"""In-process registry of relay WebSocket peers."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import WebSocket

from live_chat.application.dto.principal import Principal
from live_chat.infrastructure.ws import codec
from live_chat.infrastructure.ws.protocol import OutboundFrame

logger = logging.getLogger(__name__)


@dataclass(eq=False, slots=True)
class RelayPeer:
    ws: WebSocket
    principal: Principal


class RelayRegistry:
    """One socket per user id; a newer login replaces the older socket."""

    def __init__(self) -> None:
        self._peers: dict[str, RelayPeer] = {}

    def register(self, ws: WebSocket, principal: Principal) -> RelayPeer:
        peer = RelayPeer(ws=ws, principal=principal)
        self._peers[principal.user_id] = peer
        logger.debug("Relay peer connected: %s (total=%d)", principal.user_id, len(self._peers))
        return peer

    def unregister(self, peer: RelayPeer) -> None:
        if self._peers.get(peer.principal.user_id) is peer:
            del self._peers[peer.principal.user_id]
        logger.debug("Relay peer disconnected: %s", peer.principal.user_id)

    def stats(self) -> dict[str, int]:
        operators = sum(1 for p in self._peers.values() if p.principal.is_operator)
        return {
            "total": len(self._peers),
            "admins": operators,
            "clients": len(self._peers) - operators,
        }

    async def send(self, peer: RelayPeer, frame: OutboundFrame) -> bool:
        try:
            await peer.ws.send_text(codec.encode(frame))
        except Exception:
            logger.debug("Send to %s failed, dropping peer", peer.principal.user_id, exc_info=True)
            self.unregister(peer)
            return False
        return True

    async def send_to_client(self, client_id: str, frame: OutboundFrame) -> bool:
        """Deliver to the customer socket bound to ``client_id``, if online."""
        for peer in list(self._peers.values()):
            if not peer.principal.is_operator and peer.principal.client_id == client_id:
                return await self.send(peer, frame)
        return False

    async def broadcast_to_operators(self, frame: OutboundFrame) -> int:
        count = 0
        for peer in list(self._peers.values()):
            if peer.principal.is_operator and await self.send(peer, frame):
                count += 1
        return count
