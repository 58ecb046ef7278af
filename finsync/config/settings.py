"""
Configuration Management for finsync

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Transactional store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    url: str = Field(
        default="sqlite+aiosqlite:///./finsync.db",
        description="SQLAlchemy async database URL"
    )
    echo: bool = Field(
        default=False,
        description="Log every SQL statement"
    )
    pool_pre_ping: bool = Field(
        default=True,
        description="Test pooled connections before handing them out"
    )
    connect_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts when creating the schema at startup"
    )

    @field_validator('url')
    @classmethod
    def validate_async_driver(cls, v: str) -> str:
        """The store runs on AsyncEngine, so the URL must name an async driver."""
        scheme = v.split("://", 1)[0]
        if "+" not in scheme:
            raise ValueError(
                f"Database URL must name an async driver "
                f"(e.g. postgresql+asyncpg, sqlite+aiosqlite), got: {scheme}"
            )
        return v


class AuthSettings(BaseSettings):
    """Bearer token configuration for the identity provider."""

    model_config = SettingsConfigDict(
        env_prefix="AUTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    jwt_secret: str = Field(
        ...,
        min_length=16,
        description="Secret used to sign and verify access tokens"
    )
    jwt_algorithm: str = Field(
        default="HS256",
        description="JWT signing algorithm"
    )
    token_ttl_minutes: int = Field(
        default=60 * 24,
        ge=1,
        description="Lifetime of issued access tokens"
    )


class SyncSettings(BaseSettings):
    """Limits for the sync and dashboard endpoints."""

    model_config = SettingsConfigDict(
        env_prefix="SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    max_batch_size: int = Field(
        default=500,
        ge=1,
        le=10000,
        description="Maximum candidates per entity kind in one sync call"
    )
    recent_transactions_limit: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Number of recent transactions shown on the dashboard"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    @property
    def is_production(self) -> bool:
        return self.app_environment.lower() == "production"


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def database(self) -> DatabaseSettings:
        return DatabaseSettings()

    @property
    def auth(self) -> AuthSettings:
        return AuthSettings()

    @property
    def sync(self) -> SyncSettings:
        return SyncSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool | str]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, with a
    `<name>_error` entry for each section that failed.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("database", "auth", "sync", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
