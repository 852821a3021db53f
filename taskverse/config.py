"""
Configuration and settings for the TaskVerse backend.
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

    # Relational storage (any SQLAlchemy URL; Postgres in production)
    database_url: Optional[str] = Field(default=None, env="DATABASE_URL")

    # GoTrue-compatible auth service
    auth_url: Optional[str] = Field(default=None, env="AUTH_URL")
    auth_api_key: Optional[str] = Field(default=None, env="AUTH_API_KEY")
    password_reset_redirect_url: Optional[str] = Field(
        default=None, env="PASSWORD_RESET_REDIRECT_URL"
    )

    # S3-compatible storage for submission attachments
    storage_bucket: str = Field(default="submissions", env="STORAGE_BUCKET")
    storage_endpoint: Optional[str] = Field(default=None, env="STORAGE_ENDPOINT")
    storage_region: Optional[str] = Field(default=None, env="STORAGE_REGION")
    storage_public_base_url: Optional[str] = Field(
        default=None, env="STORAGE_PUBLIC_BASE_URL"
    )
    aws_access_key_id: Optional[str] = Field(
        default=None, env="AWS_ACCESS_KEY_ID"
    )
    aws_secret_access_key: Optional[str] = Field(
        default=None, env="AWS_SECRET_ACCESS_KEY"
    )

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, env="USE_IN_MEMORY_BACKENDS"
    )

    leaderboard_limit: int = Field(default=50, env="LEADERBOARD_LIMIT")
    log_level: str = Field(default="INFO", env="LOG_LEVEL")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
