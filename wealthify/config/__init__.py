"""Configuration package."""

from wealthify.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    PostgresSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "PostgresSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
