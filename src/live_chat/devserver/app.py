from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from live_chat.application.exceptions import AuthRejected, ChatError
from live_chat.application.ports.auth import TokenVerifier
from live_chat.config import settings
from live_chat.devserver import routes, ws
from live_chat.devserver.registry import RelayRegistry
from live_chat.devserver.repository import InMemoryChatRepository
from live_chat.infrastructure.auth.hs256_verifier import HS256Verifier

logger = logging.getLogger(__name__)


def create_app(
    *,
    verifier: TokenVerifier | None = None,
    repository: InMemoryChatRepository | None = None,
) -> FastAPI:
    """Local stand-in for the booking backend's chat endpoints."""
    app = FastAPI(
        title="Live Chat Dev Relay",
        version="0.1.0",
    )
    app.state.verifier = verifier or HS256Verifier(settings.JWT_SECRET, settings.JWT_ALGORITHM)
    app.state.repository = repository or InMemoryChatRepository()
    app.state.registry = RelayRegistry()

    _register_exception_handlers(app)

    app.include_router(routes.health_router)
    app.include_router(routes.router)
    app.include_router(ws.router)

    logger.debug("Dev relay app created")
    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthRejected)
    async def _auth_rejected(_req: Request, exc: AuthRejected) -> JSONResponse:
        return JSONResponse(status_code=401, content={"detail": exc.detail})

    @app.exception_handler(ChatError)
    async def _chat_error(_req: Request, exc: ChatError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": exc.detail})
