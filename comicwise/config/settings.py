#!/usr/bin/env python3
"""
Centralized Configuration Module using Pydantic Settings

Type-safe, environment-based configuration for the ComicWise cache and
rate-limit layer. Every tunable (Redis connection, cache backend, TTLs,
rate-limit defaults, logging) is read here once and shared.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support
- Type validation at startup (fail fast on misconfiguration)
- Grouped views (settings.redis, settings.cache, ...) for call sites
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RedisSettings(BaseSettings):
    """
    Redis configuration for the networked key-value store.

    Command retries use exponential backoff capped at REDIS_RETRY_BACKOFF_CAP
    seconds, at most REDIS_MAX_RETRIES attempts per command.
    """

    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")
    REDIS_TLS_ENABLED: bool = Field(default=False, description="Use TLS (honoured in production)")

    REDIS_MAX_CONNECTIONS: int = Field(default=50, description="Maximum pooled connections")
    REDIS_SOCKET_TIMEOUT: float = Field(default=5.0, description="Socket timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: float = Field(default=5.0, description="Connect timeout in seconds")
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Health check interval in seconds")

    REDIS_MAX_RETRIES: int = Field(default=3, description="Retries per command")
    REDIS_RETRY_BACKOFF_BASE: float = Field(default=0.05, description="Backoff base in seconds")
    REDIS_RETRY_BACKOFF_CAP: float = Field(default=2.0, description="Backoff ceiling in seconds")
    REDIS_RECONNECT_COOLDOWN: float = Field(
        default=5.0, description="Seconds to wait after a failed connect before trying again"
    )

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class CacheSettings(BaseSettings):
    """
    Cache configuration.
    """

    CACHE_BACKEND: str = Field(
        default="redis", description="Key-value store implementation: redis or memory"
    )
    ENABLE_CACHING: bool = Field(default=True, description="Global cache switch")
    CACHE_DEFAULT_TTL: int = Field(default=1800, description="Default entry TTL (MEDIUM tier)")
    CACHE_KEY_PREFIX: str = Field(default="api", description="Default HTTP cache key prefix")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class RateLimitSettings(BaseSettings):
    """
    Rate limiting configuration.
    """

    RATE_LIMIT_ENABLED: bool = Field(default=True, description="Enable rate limiting")
    RATE_LIMIT_DEFAULT_REQUESTS: int = Field(default=100, description="Requests per window")
    RATE_LIMIT_DEFAULT_WINDOW: int = Field(default=60, description="Window length in seconds")
    RATE_LIMIT_SWEEP_INTERVAL: int = Field(
        default=60, description="Seconds between expired-record sweeps"
    )

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class LoggingSettings(BaseSettings):
    """
    Logging configuration for structured logging.
    """

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class ApplicationSettings(BaseSettings):
    """
    General application settings.
    """

    ENVIRONMENT: Literal["development", "test", "staging", "production"] = Field(
        default="development",
        description="Application environment"
    )
    DEBUG: bool = Field(default=False, description="Debug mode")
    APP_NAME: str = Field(default="ComicWise", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")
    API_HOST: str = Field(default="0.0.0.0", description="Bind host")
    API_PORT: int = Field(default=8000, description="Bind port")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration sections.

    Usage:
        from comicwise.config.settings import get_settings

        settings = get_settings()
        redis_host = settings.redis.REDIS_HOST
        window = settings.rate_limit.RATE_LIMIT_DEFAULT_WINDOW
    """

    # Redis settings
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str | None = None
    REDIS_TLS_ENABLED: bool = False
    REDIS_MAX_CONNECTIONS: int = 50
    REDIS_SOCKET_TIMEOUT: float = 5.0
    REDIS_SOCKET_CONNECT_TIMEOUT: float = 5.0
    REDIS_HEALTH_CHECK_INTERVAL: int = 30
    REDIS_MAX_RETRIES: int = 3
    REDIS_RETRY_BACKOFF_BASE: float = 0.05
    REDIS_RETRY_BACKOFF_CAP: float = 2.0
    REDIS_RECONNECT_COOLDOWN: float = 5.0

    # Cache settings
    CACHE_BACKEND: str = "redis"
    ENABLE_CACHING: bool = True
    CACHE_DEFAULT_TTL: int = 1800
    CACHE_KEY_PREFIX: str = "api"

    # Rate limiting settings
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_DEFAULT_REQUESTS: int = 100
    RATE_LIMIT_DEFAULT_WINDOW: int = 60
    RATE_LIMIT_SWEEP_INTERVAL: int = 60

    # Logging settings
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: Literal["json", "console"] = "json"

    # Application settings
    ENVIRONMENT: Literal["development", "test", "staging", "production"] = "development"
    DEBUG: bool = False
    APP_NAME: str = "ComicWise"
    APP_VERSION: str = "1.0.0"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    @field_validator(
        "CACHE_DEFAULT_TTL",
        "RATE_LIMIT_DEFAULT_REQUESTS",
        "RATE_LIMIT_DEFAULT_WINDOW",
        "RATE_LIMIT_SWEEP_INTERVAL",
    )
    @classmethod
    def validate_positive(cls, v, info):
        """Reject zero and negative durations and limits."""
        if v <= 0:
            raise ValueError(f"{info.field_name} must be positive, got {v}")
        return v

    @property
    def redis(self) -> 'RedisSettings':
        """Get Redis settings."""
        return RedisSettings(
            REDIS_HOST=self.REDIS_HOST,
            REDIS_PORT=self.REDIS_PORT,
            REDIS_DB=self.REDIS_DB,
            REDIS_PASSWORD=self.REDIS_PASSWORD,
            REDIS_TLS_ENABLED=self.REDIS_TLS_ENABLED,
            REDIS_MAX_CONNECTIONS=self.REDIS_MAX_CONNECTIONS,
            REDIS_SOCKET_TIMEOUT=self.REDIS_SOCKET_TIMEOUT,
            REDIS_SOCKET_CONNECT_TIMEOUT=self.REDIS_SOCKET_CONNECT_TIMEOUT,
            REDIS_HEALTH_CHECK_INTERVAL=self.REDIS_HEALTH_CHECK_INTERVAL,
            REDIS_MAX_RETRIES=self.REDIS_MAX_RETRIES,
            REDIS_RETRY_BACKOFF_BASE=self.REDIS_RETRY_BACKOFF_BASE,
            REDIS_RETRY_BACKOFF_CAP=self.REDIS_RETRY_BACKOFF_CAP,
            REDIS_RECONNECT_COOLDOWN=self.REDIS_RECONNECT_COOLDOWN,
        )

    @property
    def cache(self) -> 'CacheSettings':
        """Get cache settings."""
        return CacheSettings(
            CACHE_BACKEND=self.CACHE_BACKEND,
            ENABLE_CACHING=self.ENABLE_CACHING,
            CACHE_DEFAULT_TTL=self.CACHE_DEFAULT_TTL,
            CACHE_KEY_PREFIX=self.CACHE_KEY_PREFIX,
        )

    @property
    def rate_limit(self) -> 'RateLimitSettings':
        """Get rate limit settings."""
        return RateLimitSettings(
            RATE_LIMIT_ENABLED=self.RATE_LIMIT_ENABLED,
            RATE_LIMIT_DEFAULT_REQUESTS=self.RATE_LIMIT_DEFAULT_REQUESTS,
            RATE_LIMIT_DEFAULT_WINDOW=self.RATE_LIMIT_DEFAULT_WINDOW,
            RATE_LIMIT_SWEEP_INTERVAL=self.RATE_LIMIT_SWEEP_INTERVAL,
        )

    @property
    def logging(self) -> 'LoggingSettings':
        """Get logging settings."""
        return LoggingSettings(
            LOG_LEVEL=self.LOG_LEVEL,
            LOG_FORMAT=self.LOG_FORMAT,
        )

    @property
    def app(self) -> 'ApplicationSettings':
        """Get application settings."""
        return ApplicationSettings(
            ENVIRONMENT=self.ENVIRONMENT,
            DEBUG=self.DEBUG,
            APP_NAME=self.APP_NAME,
            APP_VERSION=self.APP_VERSION,
            API_HOST=self.API_HOST,
            API_PORT=self.API_PORT,
        )

    @property
    def use_tls(self) -> bool:
        """TLS is only negotiated in production."""
        return self.REDIS_TLS_ENABLED and self.ENVIRONMENT == "production"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global settings instance (singleton).

    Returns:
        Settings: Global settings instance
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


def reload_settings() -> Settings:
    """
    Reload settings (useful for testing).

    Returns:
        Settings: New settings instance
    """
    global _settings
    _settings = Settings()
    return _settings
