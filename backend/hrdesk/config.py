from __future__ import annotations

import os
from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)
    """Application runtime configuration."""

    app_name: str = "HR Desk"
    environment: str = "development"
    host: str = os.getenv("HRD_HOST", "127.0.0.1")
    port: int = int(os.getenv("HRD_PORT", "8080"))
    log_level: str = os.getenv("HRD_LOG_LEVEL", "INFO")

    sqlite_path: Path = Path(os.getenv("HRD_SQLITE_PATH", "./data/hrdesk.db"))

    access_password: str = os.getenv("HRD_ACCESS_PASSWORD", "change-me")
    token_secret: str = os.getenv("HRD_TOKEN_SECRET", "change-me")
    token_ttl_minutes: int = int(os.getenv("HRD_TOKEN_TTL_MINUTES", "720"))

    timezone: str = os.getenv("TZ", "America/Mexico_City")

    page_size: int = int(os.getenv("HRD_PAGE_SIZE", "10"))
    feed_limit: int = int(os.getenv("HRD_FEED_LIMIT", "50"))
    min_purchase_cost: float = float(os.getenv("HRD_MIN_PURCHASE_COST", "1000"))

    cors_origins: List[str] = Field(
        default_factory=lambda: [
            origin.strip()
            for origin in os.getenv("HRD_CORS_ORIGINS", "http://127.0.0.1:5173,http://localhost:5173").split(",")
            if origin.strip()
        ]
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: str | List[str]) -> List[str]:
        if isinstance(value, list):
            return value
        if not value:
            return []
        return [origin.strip() for origin in value.split(",") if origin.strip()]

    @field_validator("page_size", "feed_limit")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value


settings = Settings()

# Ensure the database directory exists
settings.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
