"""Application configuration.

Loads settings from ``PRINTSHOP_*`` environment variables (or a ``.env``
file) with sensible defaults.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Catalog client settings."""

    api_url: str = Field(
        default="http://localhost:8080",
        description="Print shop REST API base URL",
    )
    api_key: str | None = Field(
        default=None,
        description="Optional bearer token for the REST API",
    )
    request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Transport timeout in seconds",
    )
    page_size: int = Field(
        default=10,
        ge=1,
        description="Print shops per listing page",
    )
    persist_filters: bool = Field(
        default=False,
        description="Keep the listing filters when navigating away and back",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_json: bool = Field(
        default=False,
        description="Render log lines as JSON instead of console text",
    )

    model_config = SettingsConfigDict(
        env_prefix="PRINTSHOP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Get the process-wide settings instance."""
    return Settings()
