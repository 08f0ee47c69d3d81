"""Application configuration."""

from functools import lru_cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_BACKEND_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "Relaychat API"
    chat_api_url: str = "https://api.dify.ai/v1"
    chat_api_key: str | None = None
    chat_api_timeout_seconds: int = 60
    database_url: str | None = None
    message_history_limit: int = 100
    conversation_list_limit: int = 20
    session_idle_timeout_seconds: int = 3600
    cors_origins: list[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]

    model_config = SettingsConfigDict(
        env_file=str(_BACKEND_DIR / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("chat_api_key", "database_url")
    @classmethod
    def _blank_as_unset(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip()

    @property
    def persistence_enabled(self) -> bool:
        return self.database_url is not None


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()
