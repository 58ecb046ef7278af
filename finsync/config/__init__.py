"""Configuration package."""

from finsync.config.settings import (
    AppSettings,
    AuthSettings,
    DatabaseSettings,
    Settings,
    SyncSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "AuthSettings",
    "DatabaseSettings",
    "Settings",
    "SyncSettings",
    "get_settings",
    "validate_all_settings",
]
