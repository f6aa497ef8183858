"""
Configuration and settings for the marketplace functions.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.constants import FCM_MAX_MULTICAST_TOKENS


class Settings(BaseSettings):
    """Environment-backed settings, read from MARKETPLACE_* variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="MARKETPLACE_",
        extra="ignore",
    )

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    # Push notifications
    android_channel_id: str = Field(default="all_serve_channel")
    max_multicast_tokens: int = Field(
        default=FCM_MAX_MULTICAST_TOKENS, gt=0, le=FCM_MAX_MULTICAST_TOKENS
    )

    # Provider search endpoint
    cors_allow_origin: str = Field(default="*")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
