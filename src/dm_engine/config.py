"""Configuration management for DM Engine.

This module handles application configuration using Pydantic settings.
Configuration can be loaded from environment variables or .env files.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with
    the DM_ENGINE_ prefix (e.g., DM_ENGINE_DATABASE_URL).
    """

    model_config = SettingsConfigDict(
        env_prefix="DM_ENGINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///dm_engine.sqlite3",
        description="SQLAlchemy URL of the store holding threads and messages",
    )
    dialect: str | None = Field(
        default=None,
        description=(
            "SQL dialect tag (sqlite, postgres, mysql). "
            "Derived from database_url when unset."
        ),
    )
    sqlite_busy_timeout: float = Field(
        default=30.0,
        description="Seconds a SQLite writer waits for the database lock",
    )

    # Messaging limits
    message_max_length: int = Field(
        default=2000,
        description="Maximum message body length in characters (after trimming)",
    )
    folder_max_length: int = Field(
        default=60,
        description="Maximum folder label length in characters",
    )
    preview_length: int = Field(
        default=140,
        description="Length of the last-message preview shown in inbox listings",
    )
    thread_list_limit: int = Field(
        default=50,
        description="Default page size for inbox listings",
    )
    message_page_size: int = Field(
        default=60,
        description="Default page size for message history",
    )

    # Application Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings: Application settings instance.
    """
    return Settings()
