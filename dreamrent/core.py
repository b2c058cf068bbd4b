"""Application configuration and settings management.

This module defines the dashboard settings loaded from environment
variables and provides a helper for accessing the cached settings object.
"""

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Dashboard configuration loaded from environment variables.

    Attributes:
        DATABASE_URL: Async SQLAlchemy connection string of the data source.
        REDIS_URL: Redis connection URL for the entity caches and rate limiting.
        ALLOWED_ORIGINS: Allowed origins for CORS.
        PROTECTED_ADMIN_EMAIL: Email of the protected super-admin account.
        PROTECTED_ADMIN_NAME: Display name used when the admin is bootstrapped.
        PROTECTED_ADMIN_PASSWORD: Password used when the admin is bootstrapped.
        HOT_CACHE_TTL_SECONDS: TTL for contacts, mopeds, deals and users.
        CONFIG_CACHE_TTL_SECONDS: TTL for stages, custom fields and field groups.
        LOOKUP_INDEX_TTL_SECONDS: TTL of the moped id lookup index.
        CACHE_MAX_ITEMS: Maximum number of records kept in one cache entry.
        CACHE_DEGRADED_ITEMS: Item cap applied when a stripped entry is still too big.
        CACHE_MAX_BYTES: Byte budget of a single serialized cache entry.
        LOGIN_RATE_LIMIT_TIMES: Login attempts allowed per window.
        LOGIN_RATE_LIMIT_SECONDS: Length of the login rate limit window.
        LOG_LEVEL: Root log level.
    """

    DATABASE_URL: str = "sqlite+aiosqlite:///./dreamrent.db"
    REDIS_URL: str = "redis://redis:6379"
    ALLOWED_ORIGINS: List[str] = ["*"]
    PROTECTED_ADMIN_EMAIL: str = "info@dreamrent.kz"
    PROTECTED_ADMIN_NAME: str = "Administrator"
    PROTECTED_ADMIN_PASSWORD: str = "dev-admin-password"
    HOT_CACHE_TTL_SECONDS: int = 5 * 60
    CONFIG_CACHE_TTL_SECONDS: int = 10 * 60
    LOOKUP_INDEX_TTL_SECONDS: int = 60
    CACHE_MAX_ITEMS: int = 500
    CACHE_DEGRADED_ITEMS: int = 200
    CACHE_MAX_BYTES: int = 3 * 1024 * 1024
    LOGIN_RATE_LIMIT_TIMES: int = 10
    LOGIN_RATE_LIMIT_SECONDS: int = 60
    LOG_LEVEL: str = "INFO"

    class Config:
        """Pydantic configuration for loading environment variables."""

        env_file = ".env"
        extra = "allow"


@lru_cache()
def get_settings() -> Settings:
    """Return cached application settings.

    The settings object is cached to prevent reloading environment
    variables multiple times during application lifetime.
    """

    return Settings()
