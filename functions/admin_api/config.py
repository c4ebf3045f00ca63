"""
Configuration and settings for the admin service.
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

    # Hosted Postgres (any SQLAlchemy URL works; SQLite for local runs)
    database_url: Optional[str] = Field(default=None, env="DATABASE_URL")

    # Hosted auth (GoTrue-compatible)
    supabase_url: Optional[str] = Field(default=None, env="SUPABASE_URL")
    supabase_anon_key: Optional[str] = Field(
        default=None, env="SUPABASE_ANON_KEY"
    )
    session_cookie_name: str = Field(
        default="sb-access-token", env="SESSION_COOKIE_NAME"
    )

    # S3-compatible object storage
    storage_endpoint: Optional[str] = Field(default=None, env="STORAGE_ENDPOINT")
    storage_region: Optional[str] = Field(default=None, env="STORAGE_REGION")
    storage_public_url: Optional[str] = Field(
        default=None, env="STORAGE_PUBLIC_URL"
    )
    aws_access_key_id: Optional[str] = Field(
        default=None, env="AWS_ACCESS_KEY_ID"
    )
    aws_secret_access_key: Optional[str] = Field(
        default=None, env="AWS_SECRET_ACCESS_KEY"
    )

    # Change feed (Redis streams)
    redis_url: Optional[str] = Field(default=None, env="REDIS_URL")
    redis_stream_key: str = Field(
        default="learnverse:changes", env="REDIS_STREAM_KEY"
    )

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, env="USE_IN_MEMORY_BACKENDS"
    )

    cors_origins: str = Field(default="*", env="CORS_ORIGINS")
    log_level: str = Field(default="INFO", env="LOG_LEVEL")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
