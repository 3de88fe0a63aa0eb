"""
Configuration for the feeding log client.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Environment-backed settings, read from ``FEEDLOG_*`` variables."""

    model_config = SettingsConfigDict(
        env_prefix="FEEDLOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_url: str = Field(default="http://127.0.0.1:8000")
    cache_path: Optional[str] = Field(default=None)
    request_timeout: float = Field(default=10.0)

    # Timers
    poll_interval_seconds: float = Field(default=60.0)
    clock_interval_seconds: float = Field(default=30.0)
    add_refetch_delay_seconds: float = Field(default=3.0)
    refetch_delay_seconds: float = Field(default=2.0)

    # Local changes newer than this are preferred over the server snapshot.
    recency_window_seconds: float = Field(default=300.0)


@lru_cache(maxsize=1)
def get_client_settings() -> ClientSettings:
    """Return cached settings instance."""
    return ClientSettings()
