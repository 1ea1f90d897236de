from __future__ import annotations

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    CHAT_WS_URL: str = "ws://localhost:5000/ws/chat"
    CHAT_API_URL: str = "http://localhost:5000/api"

    CHAT_RECONNECT_DELAY_SECONDS: float = 5.0
    CHAT_TYPING_IDLE_SECONDS: float = 2.0
    CHAT_HISTORY_LIMIT: int = 50
    CHAT_GREETING_TIMEOUT_SECONDS: float = 10.0

    HTTP_TIMEOUT_SECONDS: float = 10.0

    JWT_SECRET: str = "dev-secret"
    JWT_ALGORITHM: str = "HS256"

    DEV_SERVER_HOST: str = "127.0.0.1"
    DEV_SERVER_PORT: int = 5000

    LOG_LEVEL: str = "INFO"

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
