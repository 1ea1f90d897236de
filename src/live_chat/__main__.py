"""Entrypoint: python -m live_chat (serves the dev relay)"""
from __future__ import annotations

import logging

import uvicorn

from live_chat.config import settings


def main() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "live_chat.devserver.app:create_app",
        factory=True,
        host=settings.DEV_SERVER_HOST,
        port=settings.DEV_SERVER_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
