"""
Configuration Management for the Cash-Flow Planner

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All tunables of the engine live here (window sizes,
extension thresholds, commit retry policy). The engine functions still take
them as explicit parameters; the settings only provide the defaults that the
application flows pass in.
"""

from decimal import Decimal, InvalidOperation
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cashflow.models.transaction import DEFAULT_TAX_RATE


class EngineSettings(BaseSettings):
    """Recurrence and settlement engine defaults."""

    model_config = SettingsConfigDict(
        env_prefix="CASHFLOW_ENGINE_",
        extra="ignore"
    )

    occurrence_window_months: int = Field(
        default=12,
        ge=1,
        le=120,
        description="Months generated up front for an open-ended recurring rule"
    )
    extension_threshold_months: int = Field(
        default=6,
        ge=0,
        le=120,
        description="Extend when the generated horizon is closer than this"
    )
    extension_months: int = Field(
        default=12,
        ge=1,
        le=120,
        description="Months generated per auto-extension"
    )
    default_tax_rate: str = Field(
        default=str(DEFAULT_TAX_RATE),
        description="Tax rate stamped on generated transactions"
    )

    @field_validator('default_tax_rate')
    @classmethod
    def validate_tax_rate(cls, v: str) -> str:
        """Must be a non-negative decimal string."""
        try:
            rate = Decimal(v)
        except InvalidOperation:
            raise ValueError(f"Tax rate must be a decimal string, got {v!r}")
        if not rate.is_finite() or rate < 0:
            raise ValueError(f"Tax rate must be a non-negative number, got {v!r}")
        return v

    @property
    def tax_rate(self) -> Decimal:
        return Decimal(self.default_tax_rate)


class StorageSettings(BaseSettings):
    """Commit retry policy for the storage collaborator."""

    model_config = SettingsConfigDict(
        env_prefix="CASHFLOW_STORAGE_",
        extra="ignore"
    )

    commit_retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per batch commit on connection errors"
    )
    commit_retry_min_wait_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Lower bound of the exponential backoff"
    )
    commit_retry_max_wait_seconds: float = Field(
        default=10.0,
        ge=0.0,
        description="Upper bound of the exponential backoff"
    )

    @model_validator(mode='after')
    def validate_wait_bounds(self) -> 'StorageSettings':
        if self.commit_retry_max_wait_seconds < self.commit_retry_min_wait_seconds:
            raise ValueError("commit_retry_max_wait_seconds must be >= the minimum wait")
        return self


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
    log_level: str = Field(
        default="INFO",
        description="Minimum level for local structured logs"
    )

    # Display
    currency_symbol: str = Field(
        default="¥",
        max_length=5,
        description="Symbol used when formatting amounts"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Only accept standard logging level names."""
        level = v.upper()
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if level not in allowed:
            raise ValueError(f"Unsupported log level: {v}. Allowed: {sorted(allowed)}")
        return level


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
    def engine(self) -> EngineSettings:
        return EngineSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

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


def validate_all_settings() -> dict[str, object]:
    """
    Validate all settings groups load.

    Returns a dict of {group_name: is_valid}, plus
    {group_name_error: message} for the ones that failed.
    """
    results: dict[str, object] = {}
    settings = get_settings()

    for name in ("engine", "storage", "app"):
        error: Optional[str] = None
        try:
            getattr(settings, name)
        except ValueError as e:
            error = str(e)
        results[name] = error is None
        if error is not None:
            results[f"{name}_error"] = error

    return results
