"""Configuration package."""

from meter_reader.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    OcrSettings,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "OcrSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
