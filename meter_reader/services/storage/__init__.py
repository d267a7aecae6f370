"""
Storage Services Package

Provides the abstract key-value interface and its concrete implementations.
The JSON file backend is the default; Google Sheets is optional.
"""

from typing import Optional

from meter_reader.config import get_settings
from meter_reader.config.settings import StorageSettings
from meter_reader.services.storage.interface import (
    CorruptDataError,
    InMemoryKeyValueStore,
    KeyValueStore,
    StorageConnectionError,
    StorageError,
)
from meter_reader.services.storage.json_file import JsonFileKeyValueStore
from meter_reader.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsKeyValueStore,
)


def create_store(settings: Optional[StorageSettings] = None) -> KeyValueStore:
    """Build the key-value store selected by STORAGE_BACKEND."""
    settings = settings or get_settings().storage
    if settings.backend == "memory":
        return InMemoryKeyValueStore()
    if settings.backend == "google_sheets":
        return GoogleSheetsKeyValueStore(GoogleSheetsClient())
    return JsonFileKeyValueStore(settings.json_path)


__all__ = [
    # Interfaces
    "KeyValueStore",
    # Exceptions
    "CorruptDataError",
    "StorageConnectionError",
    "StorageError",
    # Implementations
    "GoogleSheetsClient",
    "GoogleSheetsKeyValueStore",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "create_store",
]
