"""Environment-based configuration using pydantic-settings.

Provides type-safe, validated defaults for retry policies and logging.
Supports .env files and nested configuration.

Example:
    >>> from retrykit.foundation.config import get_settings
    >>> settings = get_settings()
    >>> settings.retry.max_retries
    5
    >>> policy = settings.retry.build_policy()

    # Or with environment variables:
    # RETRYKIT_RETRY_BACKOFF=exponential
    # RETRYKIT_RETRY_MAX_DELAY_US=2000000
    # RETRYKIT_LOG_LEVEL=DEBUG
"""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING, Literal

from pydantic import Field, NonNegativeInt, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from retrykit.retry import RetryPolicy


class RetrySettings(BaseSettings):
    """Default retry configuration. Delays are in microseconds."""

    model_config = SettingsConfigDict(
        env_prefix="RETRYKIT_RETRY_",
        extra="ignore",
    )

    backoff: Literal["constant", "exponential", "fibonacci", "full_jitter"] = "constant"
    base_delay_us: NonNegativeInt = Field(default=50_000, description="Base delay in microseconds")
    max_retries: NonNegativeInt = Field(default=5, description="Retries after the first attempt")
    max_delay_us: NonNegativeInt | None = Field(default=None, description="Per-try delay cap")
    max_cumulative_delay_us: NonNegativeInt | None = Field(
        default=None,
        description="Stop once total waiting would exceed this",
    )

    def build_policy(self) -> RetryPolicy:
        """Policy described by these settings.

        Defaults give ``constant_delay(50000) & limit_retries(5)``.
        """
        from retrykit.retry import (
            cap_delay,
            constant_delay,
            exponential_backoff,
            fibonacci_backoff,
            full_jitter_backoff,
            limit_retries,
            limit_retries_by_cumulative_delay,
        )

        match self.backoff:
            case "constant": policy = constant_delay(self.base_delay_us)
            case "exponential": policy = exponential_backoff(self.base_delay_us)
            case "fibonacci": policy = fibonacci_backoff(self.base_delay_us)
            case "full_jitter": policy = full_jitter_backoff(self.base_delay_us)
        if self.max_delay_us is not None:
            policy = cap_delay(self.max_delay_us, policy)
        if self.max_cumulative_delay_us is not None:
            policy = limit_retries_by_cumulative_delay(self.max_cumulative_delay_us, policy)
        return policy & limit_retries(self.max_retries)


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="RETRYKIT_LOG_",
        extra="ignore",
    )

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    format: Literal["json", "text"] = "text"

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, v: str) -> str:
        """Accept lowercase level names and the WARN alias."""
        if not isinstance(v, str):
            return v
        v = v.upper()
        return "WARNING" if v == "WARN" else v


class RetrykitSettings(BaseSettings):
    """Root settings for retrykit.

    Loads configuration from environment variables with RETRYKIT_ prefix.

    Example environment variables:
        RETRYKIT_RETRY_MAX_RETRIES=3
        RETRYKIT_RETRY_BACKOFF=full_jitter
        RETRYKIT_LOG_LEVEL=DEBUG
    """

    model_config = SettingsConfigDict(
        env_prefix="RETRYKIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    retry: RetrySettings = Field(default_factory=RetrySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


@lru_cache(maxsize=1)
def get_settings() -> RetrykitSettings:
    """Get the global settings instance (cached)."""
    return RetrykitSettings()


def clear_settings_cache() -> None:
    """Drop the cached settings; the next get_settings() re-reads the environment."""
    get_settings.cache_clear()
