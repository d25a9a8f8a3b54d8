"""
Configuration Management for the Household Store

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

import warnings
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class FirebaseSettings(BaseSettings):
    """Firebase Realtime Database configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FIREBASE_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Firebase service account credentials JSON"
    )
    database_url: str = Field(
        ...,
        description="Realtime Database URL (https://<project>.firebaseio.com)"
    )
    app_name: str = Field(
        default="household-store",
        description="Name of the firebase_admin app instance"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            warnings.warn(
                f"Firebase credentials file not found at {v}. "
                "Make sure it exists before connecting."
            )
        return v


class StoreSettings(BaseSettings):
    """Policy applied to every store call."""

    model_config = SettingsConfigDict(
        env_prefix="STORE_",
        extra="ignore"
    )

    timeout_seconds: float = Field(
        default=5.0,
        gt=0.0,
        le=120.0,
        description="Upper bound for a single store call"
    )


class MaintenanceSettings(BaseSettings):
    """Backup, repair and retention policy."""

    model_config = SettingsConfigDict(
        env_prefix="MAINTENANCE_",
        extra="ignore"
    )

    backup_keep_count: int = Field(
        default=10,
        ge=1,
        description="Backups kept per user when pruning"
    )
    archive_retention_days: int = Field(
        default=60,
        ge=1,
        description="Archived records older than this many whole days are deleted"
    )
    cleanup_batch_size: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Deletes issued concurrently per batch"
    )
    active_user_days: int = Field(
        default=30,
        ge=1,
        description="A profile updated within this many days counts as active in analytics"
    )
    default_language: str = Field(
        default="he",
        min_length=2,
        max_length=5,
        description="Locale code back-filled into profiles"
    )
    default_timezone: str = Field(
        default="Asia/Jerusalem",
        description="Timezone given to new profiles"
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

    persist_audit_events: bool = Field(
        default=True,
        description="Write audit events to the store as well as the log"
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

    # Sub-settings are loaded lazily so tests can run without Firebase config

    @property
    def firebase(self) -> FirebaseSettings:
        return FirebaseSettings()

    @property
    def store(self) -> StoreSettings:
        return StoreSettings()

    @property
    def maintenance(self) -> MaintenanceSettings:
        return MaintenanceSettings()

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


def validate_all_settings() -> dict[str, Any]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus {setting_name}_error
    holding the message for each group that failed.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("firebase", "store", "maintenance", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
