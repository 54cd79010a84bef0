"""
Application configuration using Pydantic Settings.

All environment variables are accessed through this config object.
Never use os.getenv() directly in business logic.
"""

from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Site Configuration
    SITE_NAME: str = Field(
        default="Priory",
        description="Public site name",
    )
    SITE_URL: str = Field(
        default="http://localhost:2009",
        description="Public base URL used to build short URLs",
    )
    ALLOWED_ORIGINS: List[str] = Field(
        default=["http://localhost:2009"],
        description="CORS allowed origins",
    )

    # Storage Configuration
    STORAGE_TYPE: str = Field(
        default="local",
        description="Object storage backend (only 'local' is served by this process)",
    )
    STORAGE_PATH: str = Field(
        default="/app/storage",
        description="Base directory for stored objects and records",
    )
    UPLOADS_URL_PATH: str = Field(
        default="/files/uploads",
        description="Public URL prefix for locally stored objects",
    )

    # Request Limits
    MAX_UPLOAD_SIZE: int = Field(
        default=104857600,
        description="Maximum file upload size in bytes (100MB)",
    )
    MAX_JSON_SIZE: int = Field(
        default=1048576,
        description="Maximum JSON request body size in bytes (1MB)",
    )
    MAX_BODY_SIZE: int = Field(
        default=1048576,
        description="Maximum size of any other request body in bytes (1MB)",
    )

    # Rate Limiting
    RATE_LIMIT_CLEANUP_INTERVAL_SECONDS: int = Field(
        default=300,
        description="Interval between rate limit store sweeps",
    )

    # Upload Client Defaults
    UPLOAD_CONCURRENCY: int = Field(
        default=3,
        description="Maximum number of concurrent client uploads",
    )
    UPLOAD_MAX_ATTEMPTS: int = Field(
        default=3,
        description="Attempts per file before an upload is marked as failed",
    )
    UPLOAD_BASE_DELAY: float = Field(
        default=1.0,
        description="Initial retry backoff in seconds",
    )
    UPLOAD_MAX_DELAY: float = Field(
        default=30.0,
        description="Upper bound for retry backoff in seconds",
    )
    UPLOAD_JITTER: float = Field(
        default=0.25,
        description="Random jitter added to each backoff, as a fraction of the delay",
    )
    UPLOAD_TIMEOUT: float = Field(
        default=120.0,
        description="Hard wall-clock timeout per transfer attempt in seconds",
    )


# Global settings instance
settings = Settings()
