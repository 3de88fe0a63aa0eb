"""
Configuration and settings for the feeding log backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # Key-value store (Redis expected)
    redis_url: Optional[str] = Field(default=None, alias="REDIS_URL")
    redis_key_prefix: str = Field(default="feedlog:", alias="FEEDLOG_REDIS_KEY_PREFIX")

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, alias="FEEDLOG_USE_IN_MEMORY_BACKENDS"
    )

    # Cross-origin access for the browser client
    cors_origin: str = Field(default="*", alias="FEEDLOG_CORS_ORIGIN")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
