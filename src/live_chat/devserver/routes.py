"""REST endpoints mirroring the backend's ``/api/chat`` routes."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel

from live_chat.devserver.deps import CurrentOperator, CurrentPrincipal, RegistryDep, RepositoryDep
from live_chat.domain.value_objects.enums import SenderType

router = APIRouter(prefix="/api/chat", tags=["chat"])
health_router = APIRouter(tags=["health"])


class MarkReadRequest(BaseModel):
    client_id: str
    sender_type: SenderType


@health_router.get("/healthz")
async def healthz(registry: RegistryDep) -> dict[str, Any]:
    return {"status": "ok", "connections": registry.stats()}


@router.get("/history")
async def get_history(
    principal: CurrentPrincipal,
    repository: RepositoryDep,
    client_id: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
) -> list[dict[str, Any]]:
    if not principal.is_operator:
        client_id = principal.client_id
    return [m.to_row() for m in repository.history(client_id, limit)]


@router.get("/conversations")
async def list_conversations(
    _operator: CurrentOperator,
    repository: RepositoryDep,
) -> list[dict[str, Any]]:
    return repository.conversations()


@router.post("/mark-read")
async def mark_read(
    body: MarkReadRequest,
    principal: CurrentPrincipal,
    repository: RepositoryDep,
) -> dict[str, Any]:
    client_id = body.client_id if principal.is_operator else principal.client_id
    if client_id is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Token carries no clientId")
    updated = repository.mark_read(client_id, body.sender_type)
    return {"success": True, "updated": updated}


@router.delete("/history/{client_id}")
async def delete_history(
    client_id: str,
    _operator: CurrentOperator,
    repository: RepositoryDep,
) -> dict[str, Any]:
    return {"success": True, "deleted": repository.delete_history(client_id)}
