"""
Application Configuration

Centralized configuration management using Pydantic settings.
Loads from environment variables with fallback to .env file.
"""
import json
from typing import Annotated, List
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


DEFAULT_SECRET_KEY = "dev-secret-key-change-in-production"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Note: get_settings() is cached, so tests that need different values
    must set the environment before the first import or clear the cache.
    """

    # Database settings
    DATABASE_URL: str = "postgresql://localhost/sigstudio_dev"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 40

    # Token signing
    SECRET_KEY: str = DEFAULT_SECRET_KEY
    REFRESH_SECRET_KEY: str = "dev-refresh-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    BCRYPT_ROUNDS: int = 12
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    # Bearer tokens closer than this to expiry are reissued on /auth/refresh
    TOKEN_REFRESH_WINDOW_SECONDS: int = 300

    # Refresh cookie
    REFRESH_COOKIE_NAME: str = "refresh_token"
    COOKIE_SECURE: bool = False

    # CORS allow-list, JSON list or comma separated in the environment
    CORS_ORIGINS: Annotated[List[str], NoDecode] = [
        "http://localhost:3000",
        "http://localhost:5000",
    ]

    # Redis for rate limiting
    REDIS_URL: str = "redis://localhost:6379/0"

    # Application settings
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_PER_MINUTE: int = 60
    RATE_LIMIT_BURST: int = 10
    # Anonymous login/register, keyed per client IP
    AUTH_RATE_LIMIT_PER_MINUTE: int = 5
    AUTH_RATE_LIMIT_BURST: int = 5
    # Reverse proxies whose X-Forwarded-For is believed; empty means none
    TRUSTED_PROXIES: Annotated[List[str], NoDecode] = []

    # Uploads
    UPLOAD_DIR: str = "uploads"
    MAX_UPLOAD_SIZE_BYTES: int = 5 * 1024 * 1024
    ALLOWED_UPLOAD_MIME_TYPES: Annotated[List[str], NoDecode] = [
        "image/jpeg",
        "image/png",
        "image/gif",
        "image/svg+xml",
        "image/webp",
    ]

    @field_validator("CORS_ORIGINS", "ALLOWED_UPLOAD_MIME_TYPES", "TRUSTED_PROXIES", mode="before")
    @classmethod
    def split_list_setting(cls, value):
        if isinstance(value, str):
            if value.lstrip().startswith("["):
                return json.loads(value)
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures we only instantiate settings once.
    """
    return Settings()
