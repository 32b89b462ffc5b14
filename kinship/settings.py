"""
Client settings using pydantic-settings for type-safe configuration.

All environment variables are centralized here with proper typing, validation,
and sensible defaults. Settings are loaded once and cached.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Settings for talking to the Kinship REST service.

    All settings have sensible defaults for local development.
    Production values should be set via environment variables or .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore extra env vars not defined here
        case_sensitive=False,  # Allow KINSHIP_API_URL or kinship_api_url
    )

    # === Remote service ===
    kinship_api_url: str = Field(
        default="http://127.0.0.1:3000",
        description="Base URL of the Kinship REST service (without /api/v1)",
    )
    kinship_api_token: str = Field(
        default="",
        description="Bearer token of the logged-in user",
    )
    request_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Per-request timeout passed to the HTTP transport",
    )

    # === Pagination ===
    page_size: int = Field(
        default=50,
        ge=1,
        le=500,
        description="Items requested per page from list endpoints",
    )
    max_pages: int = Field(
        default=50,
        ge=1,
        description="Upper bound on pages walked for one list slice",
    )

    @field_validator("kinship_api_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the base URL so paths can be appended with a single slash."""
        return v.rstrip("/")

    @field_validator("kinship_api_token", mode="after")
    @classmethod
    def warn_missing_token(cls, v: str) -> str:
        """Warn when no token is configured; every endpoint requires one."""
        if not v:
            logger.warning(
                "KINSHIP_API_TOKEN is not set. Requests will be sent unauthenticated "
                "and the service will answer 401."
            )
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded once and cached for the lifetime of the process.
    """
    return Settings()
