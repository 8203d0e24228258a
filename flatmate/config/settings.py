"""
Configuration Management for Flatmate

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Every tunable threshold (lockout, quotas, tolerances) is visible in one
place and validated at startup. PIN hashing parameters are deliberately
NOT here: they are fixed constants in flatmate.security.pin.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Local key-value storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FLATMATE_STORAGE_",
        extra="ignore"
    )

    backend: Literal["json", "memory"] = Field(
        default="json",
        description="Storage backend to use"
    )
    data_dir: Path = Field(
        default=Path(".flatmate"),
        description="Directory holding the JSON store"
    )
    file_name: str = Field(
        default="store.json",
        description="File name of the JSON store inside data_dir"
    )
    namespace: str = Field(
        default="flatmate",
        description="Prefix applied to every storage key"
    )
    max_bytes: int = Field(
        default=5 * 1024 * 1024,
        ge=1024,
        description="Storage quota in bytes (mirrors browser storage limits)"
    )

    # Compare-and-swap retries on concurrent writes
    conflict_retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="How many times a conflicting write is retried"
    )
    conflict_retry_wait_seconds: float = Field(
        default=0.05,
        ge=0.0,
        le=5.0,
        description="Base wait for exponential backoff between retries"
    )

    audit_log_limit: int = Field(
        default=500,
        ge=10,
        description="Number of audit events retained in storage"
    )

    @property
    def file_path(self) -> Path:
        """Full path of the JSON store."""
        return self.data_dir / self.file_name


class SecuritySettings(BaseSettings):
    """PIN rate-limiting configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FLATMATE_SECURITY_",
        extra="ignore"
    )

    max_failed_attempts: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Consecutive failures before lockout"
    )
    lockout_minutes: int = Field(
        default=15,
        ge=1,
        le=1440,
        description="Lockout duration once max_failed_attempts is reached"
    )
    base_delay_ms: int = Field(
        default=1000,
        ge=0,
        description="Progressive delay unit (doubles per failed attempt)"
    )
    max_delay_ms: int = Field(
        default=16000,
        ge=0,
        description="Upper bound for the progressive delay"
    )
    indefinite_lock_days: int = Field(
        default=365,
        ge=1,
        description="Lock length used when no lock timeout is configured"
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
    log_level: str = Field(
        default="INFO",
        description="Minimum log level for structured logs"
    )

    # Household defaults
    default_currency: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
        description="ISO 4217 currency used for new households"
    )
    default_locale: str = Field(
        default="en-US",
        pattern=r"^[a-z]{2}-[A-Z]{2}$",
        description="BCP 47 locale used for new households"
    )
    max_active_members: int = Field(
        default=12,
        ge=1,
        le=100,
        description="Maximum number of active members in a household"
    )

    # Ledger behaviour
    strict_settlement: bool = Field(
        default=False,
        description="Raise instead of warn when balances do not net to zero"
    )

    # Groceries
    duplicate_similarity_threshold: float = Field(
        default=0.8,
        gt=0.0,
        le=1.0,
        description="Name similarity above which a grocery is flagged as duplicate"
    )
    duplicate_window_hours: int = Field(
        default=24,
        ge=1,
        description="Only purchases this close together are compared"
    )

    # Notes and chat
    reminder_horizon_hours: int = Field(
        default=24,
        ge=1,
        description="Reminders due within this window are pending"
    )
    message_edit_window_minutes: int = Field(
        default=5,
        ge=0,
        description="How long after sending a chat message may be edited"
    )

    @field_validator('default_currency')
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.upper()


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
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def security(self) -> SecuritySettings:
        return SecuritySettings()

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


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("storage", "security", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
