# File: catalogsync/core/config.py
"""
Configuration settings for CatalogSync.

This module defines application settings using Pydantic's BaseSettings,
which supports environment variable loading and validation.
"""

from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    This class uses Pydantic's BaseSettings to load configuration from
    environment variables, with validation and type conversion.
    """

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        extra="ignore",
    )

    PROJECT_NAME: str = "CatalogSync"

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///catalogsync.db"
    DATABASE_ECHO: bool = False

    # File storage (import sources and export outputs)
    FILE_STORAGE_PATH: str = "./uploads"

    # Staging store between pre-processing and processing of import jobs
    STAGING_BACKEND: str = "redis"
    REDIS_URL: str = "redis://localhost:6379/0"
    STAGING_TTL: int = 60 * 60  # 1 hour
    STAGING_KEY_PREFIX: str = "pij"

    # Product import
    IMPORT_BATCH_SIZE: int = 100  # rows between progress checkpoints
    IMPORT_DELIMITER: str = ","

    # Product export
    EXPORT_BATCH_SIZE: int = 50  # products per page
    EXPORT_DELIMITER: str = ";"
    EXPORT_NEWLINE: str = "\r\n"
    EXPORT_ISOLATION_LEVEL: Optional[str] = "REPEATABLE READ"

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid logging level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        return v.upper() if v.upper() in valid_levels else "INFO"

    @field_validator("STAGING_BACKEND")
    @classmethod
    def validate_staging_backend(cls, v: str) -> str:
        """Only redis and in-process memory staging are supported."""
        backend = v.lower()
        if backend not in ("redis", "memory"):
            raise ValueError("STAGING_BACKEND must be 'redis' or 'memory'")
        return backend

    @field_validator("STAGING_TTL", "IMPORT_BATCH_SIZE", "EXPORT_BATCH_SIZE")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        return max(1, v)

    @field_validator("EXPORT_ISOLATION_LEVEL", mode="before")
    @classmethod
    def validate_isolation_level(cls, v: Optional[str]) -> Optional[str]:
        """Empty string disables the explicit isolation level."""
        if v is None or not str(v).strip():
            return None
        return str(v).strip().upper()


# Create settings instance
settings = Settings()
