"""
Configuration and settings for the paperframe backend.
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

    # Single admin identity, compared against Basic-Auth credentials.
    api_admin_user: str = Field(default="")
    api_admin_pass: str = Field(default="")
    auth_realm: str = Field(default="paperframe")
    login_redirect_url: str = Field(default="/")

    # Metadata store: Redis wins over a SQLAlchemy URL when both are set.
    redis_url: Optional[str] = Field(default=None)
    database_url: Optional[str] = Field(default=None)
    orphan_queue_key: str = Field(default="paperframe:orphans")

    # S3-compatible object storage
    s3_endpoint: Optional[str] = Field(default=None)
    s3_region: Optional[str] = Field(default=None)
    s3_bucket: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)

    # Upper bound for any single call to either backend.
    storage_timeout_seconds: float = Field(default=10.0, gt=0)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    cas_max_retries: int = Field(default=5, ge=1)
    rotation_interval_seconds: int = Field(default=3600, ge=1)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
