"""FastAPI dependency injection helpers for the dev relay."""
from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from live_chat.application.dto.principal import Principal
from live_chat.application.exceptions import AuthRejected
from live_chat.application.ports.auth import TokenVerifier
from live_chat.devserver.registry import RelayRegistry
from live_chat.devserver.repository import InMemoryChatRepository

_bearer_scheme = HTTPBearer()


def get_verifier(request: Request) -> TokenVerifier:
    return request.app.state.verifier


def get_repository(request: Request) -> InMemoryChatRepository:
    return request.app.state.repository


def get_registry(request: Request) -> RelayRegistry:
    return request.app.state.registry


RepositoryDep = Annotated[InMemoryChatRepository, Depends(get_repository)]
RegistryDep = Annotated[RelayRegistry, Depends(get_registry)]


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(_bearer_scheme)],
    verifier: Annotated[TokenVerifier, Depends(get_verifier)],
) -> Principal:
    try:
        return await verifier.verify(credentials.credentials)
    except AuthRejected as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=exc.detail,
        ) from exc


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


async def get_current_operator(principal: CurrentPrincipal) -> Principal:
    if not principal.is_operator:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return principal


CurrentOperator = Annotated[Principal, Depends(get_current_operator)]
