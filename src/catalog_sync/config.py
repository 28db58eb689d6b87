"""
Application configuration using Pydantic Settings.

Loads configuration from environment variables with validation,
type coercion, and sensible defaults.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class MetadataProviderConfig(BaseSettings):
    """Metadata provider (RAWG) configuration."""

    model_config = SettingsConfigDict(env_prefix="RAWG_")

    api_key: SecretStr = Field(
        default=...,
        description="RAWG API key from https://rawg.io/apidocs",
    )
    base_url: str = Field(
        default="https://api.rawg.io/api",
        description="Base URL for the RAWG API",
    )
    search_page_size: int = Field(
        default=5,
        ge=1,
        le=40,
        description="Number of results requested per free-text search",
    )
    timeout_seconds: int = Field(
        default=30,
        ge=5,
        le=120,
        description="HTTP request timeout in seconds",
    )

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Keep URLs joinable with a leading-slash path."""
        return v.rstrip("/")


class PricingProviderConfig(BaseSettings):
    """Pricing provider (Steam Store) configuration."""

    model_config = SettingsConfigDict(env_prefix="STEAM_")

    store_url: str = Field(
        default="https://store.steampowered.com/api",
        description="Base URL for Steam Store API",
    )
    country_code: str = Field(
        default="US",
        min_length=2,
        max_length=2,
        description="Country used for price lookups",
    )
    language: str = Field(
        default="english",
        description="Language for store responses",
    )
    timeout_seconds: int = Field(
        default=30,
        ge=5,
        le=120,
        description="HTTP request timeout in seconds",
    )

    @field_validator("store_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Keep URLs joinable with a leading-slash path."""
        return v.rstrip("/")


class RateLimitConfig(BaseSettings):
    """Outbound rate limit shared by every provider call."""

    model_config = SettingsConfigDict(env_prefix="RATE_LIMIT_")

    requests_per_minute: int = Field(
        default=100,
        ge=1,
        le=6000,
        description="Sustained outbound requests per minute (100 = one call every 600ms)",
    )
    burst_size: int = Field(
        default=1,
        ge=1,
        le=50,
        description="Calls allowed back to back before throttling",
    )


class RetryConfig(BaseSettings):
    """Retry behavior configuration."""

    model_config = SettingsConfigDict(env_prefix="RETRY_")

    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum number of attempts per request",
    )
    base_delay_seconds: float = Field(
        default=5.0,
        ge=0.0,
        le=30.0,
        description="Base delay between retries (exponential backoff)",
    )
    max_delay_seconds: float = Field(
        default=60.0,
        ge=0.0,
        le=300.0,
        description="Maximum delay between retries",
    )
    exponential_base: float = Field(
        default=2.0,
        ge=1.5,
        le=4.0,
        description="Base for exponential backoff calculation",
    )
    jitter_seconds: float = Field(
        default=1.0,
        ge=0.0,
        le=30.0,
        description="Upper bound of random jitter added to each backoff",
    )


class SyncConfig(BaseSettings):
    """Catalog synchronization configuration."""

    model_config = SettingsConfigDict(env_prefix="SYNC_")

    catalog_path: Path = Field(
        default=Path("data/games.json"),
        description="JSON catalog snapshot",
    )
    checkpoint_every: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Persist the snapshot after this many mutations",
    )
    curated_titles_path: Path | None = Field(
        default=None,
        description="JSON array of curated titles (built-in list if unset)",
    )
    interval_seconds: int = Field(
        default=86400,
        ge=60,
        description="Delay between passes in scheduled mode",
    )


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    format: Literal["json", "console"] = Field(
        default="json",
        description="Log output format",
    )
    include_timestamp: bool = Field(
        default=True,
        description="Include timestamp in log entries",
    )


class Settings(BaseSettings):
    """
    Main application settings.

    Aggregates all configuration sections and provides
    a single entry point for configuration access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Environment
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )

    # Sub-configurations
    metadata: MetadataProviderConfig = Field(default_factory=MetadataProviderConfig)
    pricing: PricingProviderConfig = Field(default_factory=PricingProviderConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses lru_cache to ensure settings are only loaded once
    and reused across the application.

    Returns:
        Settings: Application configuration instance
    """
    return Settings()
