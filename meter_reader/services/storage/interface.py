"""
Abstract Storage Interface

DESIGN DECISION: Persistence is a plain key-value store holding JSON text.
This allows us to:
1. Keep the data in a local JSON file, a Google Sheet, or memory
2. Use in-memory storage for testing
3. Keep the registry decoupled from how its data is written

The interface is intentionally tiny - the registry only ever reads its three
keys at startup and rewrites whole values after each change.
"""

from abc import ABC, abstractmethod
from typing import Optional


class KeyValueStore(ABC):
    """
    Abstract interface for key-value persistence.

    Any storage implementation (JSON file, Google Sheets, etc.)
    must implement these methods.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Read the value stored under a key.

        Args:
            key: The key to look up

        Returns:
            The stored text, or None if the key was never written

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Replace the value stored under a key.

        Args:
            key: The key to write
            value: The full new value

        Raises:
            StorageError: If the write fails
        """
        pass


class InMemoryKeyValueStore(KeyValueStore):
    """Dictionary-backed store, used by tests and the `memory` backend."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def as_dict(self) -> dict[str, str]:
        return dict(self._data)


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class CorruptDataError(StorageError):
    """Stored data could not be decoded."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
