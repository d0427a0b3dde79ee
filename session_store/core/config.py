"""
Session store configuration using Pydantic Settings.

Configuration values can be set via environment variables (prefixed with
``SESSION_STORE_``) or a .env file.
"""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Session store settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix="SESSION_STORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database settings
    database_url: str = "sqlite+aiosqlite:///./data/sessions.db"
    echo_sql: bool = False
    create_schema: bool = True

    # Expiration and cleanup
    # 0 disables cleanup entirely
    cleanup_limit: int = 0
    limit_subquery: bool = True
    # When unset, TTL is derived from cookie.maxAge or defaults to one day
    ttl_seconds: Optional[int] = None
    atomic_upsert: bool = False

    # Logging
    log_level: str = "INFO"
    json_logging: bool = False


# Global settings instance
settings = Settings()
