"""
Configuration Management for Retreat Finance

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The core has exactly one external dependency (the database), so the
settings surface is small: where the store lives, how the connection
pool behaves, and the business policy limits applied at validation time.
"""

from decimal import Decimal
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Durable store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="RETREAT_DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    url: str = Field(
        default="sqlite+aiosqlite:///./retreats.db",
        description="SQLAlchemy async database URL"
    )

    # Connection pool
    pool_size: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Persistent connections kept in the pool"
    )
    max_overflow: int = Field(
        default=10,
        ge=0,
        description="Extra connections allowed beyond pool_size"
    )
    pool_timeout: int = Field(
        default=30,
        ge=1,
        description="Seconds to wait for a pooled connection"
    )
    pool_recycle: int = Field(
        default=1800,
        description="Seconds after which a connection is recycled"
    )
    echo: bool = Field(
        default=False,
        description="Log every emitted SQL statement"
    )

    # SQLite specifics
    sqlite_wal: bool = Field(
        default=True,
        description="Use write-ahead logging for file databases"
    )
    sqlite_busy_timeout: float = Field(
        default=5.0,
        ge=0.0,
        description="Seconds a connection waits on a locked database"
    )

    @field_validator('url')
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Reject values that are obviously not database URLs."""
        if "://" not in v:
            raise ValueError(f"Not a database URL: {v}")
        return v


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

    # Policy limits
    max_transaction_amount: Decimal = Field(
        default=Decimal("999999.99"),
        gt=0,
        description="Largest amount accepted for a single transaction"
    )
    top_categories_limit: int = Field(
        default=5,
        ge=1,
        le=100,
        description="How many categories the statistics ranking returns"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for structured logs"
    )
    log_json: bool = Field(
        default=True,
        description="Render logs as JSON (False = console renderer)"
    )


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

    @property
    def database(self) -> DatabaseSettings:
        return DatabaseSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()
