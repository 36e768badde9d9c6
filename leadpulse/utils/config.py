"""
Configuration Management

Uses Pydantic Settings for environment-based configuration.
Loads from .env file automatically.
"""

from typing import Optional
from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Read replica holding the per-product lead tables
    READ_REPLICA_DATABASE_URL: Optional[str] = None
    READ_REPLICA_POOL_SIZE: int = 2
    READ_REPLICA_POOL_TIMEOUT: float = 10.0

    # Write store holding clients and table mappings
    WRITE_DATABASE_URL: Optional[str] = None

    # Calendar dates (today, this week, ...) are resolved in this timezone
    REPORTING_TIMEZONE: str = "Asia/Kolkata"

    # Application Settings
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    SQL_DEBUG: bool = False

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"
        case_sensitive = False


@lru_cache
def get_settings() -> Settings:
    """Get or create cached settings instance."""
    return Settings()
