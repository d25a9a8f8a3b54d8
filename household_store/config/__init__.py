"""Configuration package."""

from household_store.config.settings import (
    AppSettings,
    FirebaseSettings,
    MaintenanceSettings,
    Settings,
    StoreSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "FirebaseSettings",
    "MaintenanceSettings",
    "Settings",
    "StoreSettings",
    "get_settings",
    "validate_all_settings",
]
