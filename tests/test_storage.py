"""
Tests for the key-value store backends.

Google Sheets is replaced by an in-process fake worksheet; no API calls.
"""

import json
import pytest

from meter_reader.config.settings import StorageSettings
from meter_reader.services.storage import (
    CorruptDataError,
    GoogleSheetsKeyValueStore,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    StorageError,
    create_store,
)


class FakeWorksheet:
    """Minimal stand-in for gspread.Worksheet."""

    def __init__(self, rows=None):
        self.rows = [list(r) for r in (rows or [["key", "value"]])]

    def get_all_values(self):
        return [list(r) for r in self.rows]

    def append_row(self, values, value_input_option=None):
        self.rows.append(list(values))

    def update_cell(self, row, col, value):
        self.rows[row - 1][col - 1] = value


class FakeSheetsClient:
    def __init__(self, sheet=None, error=None):
        self.sheet = sheet or FakeWorksheet()
        self.error = error

    def get_store_sheet(self):
        if self.error:
            raise self.error
        return self.sheet


class TestInMemoryStore:
    """Tests for the dictionary-backed store."""

    def test_get_missing_key(self):
        """Test unknown keys read as None."""
        assert InMemoryKeyValueStore().get("nope") is None

    def test_set_then_get(self):
        """Test a value can be written and replaced."""
        store = InMemoryKeyValueStore({"a": "1"})
        store.set("a", "2")
        assert store.get("a") == "2"
        assert store.as_dict() == {"a": "2"}


class TestJsonFileStore:
    """Tests for the JSON file store."""

    def test_missing_file_is_empty(self, tmp_path):
        """Test a store without a file starts empty."""
        store = JsonFileKeyValueStore(tmp_path / "data.json")
        assert store.get("meterReadings_meters") is None

    def test_values_survive_reopen(self, tmp_path):
        """Test writes are on disk for the next process."""
        path = tmp_path / "nested" / "data.json"
        JsonFileKeyValueStore(path).set("k", '[{"a": 1}]')

        assert JsonFileKeyValueStore(path).get("k") == '[{"a": 1}]'
        assert json.loads(path.read_text(encoding="utf-8")) == {"k": '[{"a": 1}]'}

    def test_no_temp_files_left_behind(self, tmp_path):
        """Test the atomic write cleans up after itself."""
        store = JsonFileKeyValueStore(tmp_path / "data.json")
        store.set("a", "1")
        store.set("b", "2")
        assert [p.name for p in tmp_path.iterdir()] == ["data.json"]

    def test_invalid_json(self, tmp_path):
        """Test a damaged file raises CorruptDataError."""
        path = tmp_path / "data.json"
        path.write_text("{oops", encoding="utf-8")
        with pytest.raises(CorruptDataError):
            JsonFileKeyValueStore(path).get("k")

    def test_non_object_json(self, tmp_path):
        """Test the document must be a JSON object."""
        path = tmp_path / "data.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(CorruptDataError):
            JsonFileKeyValueStore(path).get("k")


class TestGoogleSheetsStore:
    """Tests for the Google Sheets store against a fake worksheet."""

    def test_get_skips_header(self):
        """Test the header row is never returned as a key."""
        store = GoogleSheetsKeyValueStore(FakeSheetsClient())
        assert store.get("key") is None

    def test_set_appends_then_updates(self):
        """Test a new key appends a row and an existing key is rewritten."""
        sheet = FakeWorksheet()
        store = GoogleSheetsKeyValueStore(FakeSheetsClient(sheet))

        store.set("meterReadings_resetDate", "1")
        store.set("meterReadings_resetDate", "15")

        assert sheet.rows == [["key", "value"], ["meterReadings_resetDate", "15"]]
        assert store.get("meterReadings_resetDate") == "15"

    def test_read_failure_wrapped(self):
        """Test backend errors surface as StorageError."""
        store = GoogleSheetsKeyValueStore(FakeSheetsClient(error=RuntimeError("quota")))
        with pytest.raises(StorageError, match="quota"):
            store.get("k")


class TestCreateStore:
    """Tests for backend selection."""

    def test_memory_backend(self):
        """Test the memory backend."""
        store = create_store(StorageSettings(backend="memory"))
        assert isinstance(store, InMemoryKeyValueStore)

    def test_json_backend(self, tmp_path):
        """Test the json backend uses the configured path."""
        path = tmp_path / "meters.json"
        store = create_store(StorageSettings(backend="json", json_path=str(path)))
        assert isinstance(store, JsonFileKeyValueStore)
        assert store.path == path


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
