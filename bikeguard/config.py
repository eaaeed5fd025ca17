"""
Configuration and settings for the BikeGuard backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # Relational store (Postgres expected, any SQLAlchemy URL works)
    database_url: Optional[str] = Field(default=None)

    # External identity / session service
    identity_api_url: Optional[str] = Field(default=None)
    identity_api_key: Optional[str] = Field(default=None)
    identity_timeout_seconds: float = Field(default=10.0)

    session_cookie_name: str = Field(default="bikeguard_session")
    session_max_age_seconds: int = Field(default=60 * 24 * 60 * 60)  # 60 days

    cors_origins: str = Field(
        default="http://localhost:5173,http://localhost:19006"
    )

    # S3-compatible storage for bike photos
    s3_endpoint: Optional[str] = Field(default=None)
    s3_region: Optional[str] = Field(default=None)
    s3_bucket: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)
    photo_url_expires_seconds: int = Field(default=900, ge=60, le=86400)

    # Live-data fallback simulation
    telemetry_default_latitude: float = Field(default=40.7128)
    telemetry_default_longitude: float = Field(default=-74.0060)
    telemetry_online_probability: float = Field(default=0.9, ge=0.0, le=1.0)

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, validation_alias="BIKEGUARD_USE_IN_MEMORY_BACKENDS"
    )

    def cors_list(self) -> List[str]:
        """Parse comma-separated CORS origins into a clean list."""
        return [x.strip() for x in self.cors_origins.split(",") if x.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
