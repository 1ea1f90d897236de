"""HTTP adapter for the chat REST collaborator."""
from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from live_chat.application.exceptions import HistoryFetchFailed
from live_chat.config import settings
from live_chat.domain.entities.conversation import ConversationSummary
from live_chat.domain.entities.message import Message
from live_chat.domain.value_objects.enums import SenderType
from live_chat.infrastructure.rest.schemas import ConversationRecord, HistoryRecord, MarkReadResult

logger = logging.getLogger(__name__)

_history_rows = TypeAdapter(list[HistoryRecord])
_conversation_rows = TypeAdapter(list[ConversationRecord])


class HttpHistoryGateway:
    """Implements application.ports.history.HistoryGateway."""

    def __init__(
        self,
        token: str,
        *,
        base_url: str | None = None,
        limit: int | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._limit = settings.CHAT_HISTORY_LIMIT if limit is None else limit
        self._client = client or httpx.AsyncClient(
            base_url=base_url or settings.CHAT_API_URL,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )
        self._headers = {"Authorization": f"Bearer {token}"}

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_history(self, conversation_key: str) -> list[Message]:
        data = await self._request(
            "GET",
            "/chat/history",
            params={"client_id": conversation_key, "limit": self._limit},
        )
        try:
            rows = _history_rows.validate_python(data)
        except PydanticValidationError as exc:
            raise HistoryFetchFailed(f"unexpected history payload: {exc.error_count()} errors") from exc
        return [row.to_message() for row in rows]

    async def mark_read(self, conversation_key: str, sender_type: SenderType) -> int:
        data = await self._request(
            "POST",
            "/chat/mark-read",
            json={"client_id": conversation_key, "sender_type": sender_type.value},
        )
        try:
            return MarkReadResult.model_validate(data).updated
        except PydanticValidationError as exc:
            raise HistoryFetchFailed("unexpected mark-read payload") from exc

    async def list_conversations(self) -> list[ConversationSummary]:
        data = await self._request("GET", "/chat/conversations")
        try:
            rows = _conversation_rows.validate_python(data)
        except PydanticValidationError as exc:
            raise HistoryFetchFailed(f"unexpected conversations payload: {exc.error_count()} errors") from exc
        return [row.to_summary() for row in rows]

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            resp = await self._client.request(method, path, headers=self._headers, **kwargs)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as exc:
            logger.warning("%s %s failed: HTTP %d", method, path, exc.response.status_code)
            raise HistoryFetchFailed(f"HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise HistoryFetchFailed(str(exc) or type(exc).__name__) from exc
        except ValueError as exc:
            raise HistoryFetchFailed("response is not JSON") from exc
