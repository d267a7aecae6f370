"""
JSON File Storage Implementation

All keys live in one JSON object on disk. Each write replaces the file
atomically (write to a temp file, then rename) so a crash mid-write leaves
the previous version intact.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

import structlog

from meter_reader.services.storage.interface import (
    CorruptDataError,
    KeyValueStore,
    StorageError,
)

logger = structlog.get_logger(__name__)


class JsonFileKeyValueStore(KeyValueStore):
    """Key-value store persisted as a single JSON document."""

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)
        self._data: Optional[dict[str, str]] = None

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        if self._data is not None:
            return self._data

        if not self._path.exists():
            self._data = {}
            return self._data

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError as e:
            raise CorruptDataError(f"Storage file {self._path} is not valid JSON: {e}")
        except OSError as e:
            raise StorageError(f"Failed to read {self._path}: {e}")

        if not isinstance(raw, dict):
            raise CorruptDataError(f"Storage file {self._path} must contain a JSON object")

        self._data = {str(k): str(v) for k, v in raw.items()}
        return self._data

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = dict(self._load())
        data[key] = value

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self._path.name}.",
                dir=str(self._path.parent),
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle)
            os.replace(tmp_name, self._path)
        except OSError as e:
            raise StorageError(f"Failed to write {self._path}: {e}")

        self._data = data
        logger.debug("storage_key_written", key=key, path=str(self._path))
