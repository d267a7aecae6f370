"""Services package."""

from meter_reader.services.image import (
    CaptureImageService,
    ImageRejectedError,
)
from meter_reader.services.ocr import (
    NoNumericContentError,
    OCRError,
    OcrSpaceService,
    OcrUnavailableError,
)
from meter_reader.services.storage import (
    CorruptDataError,
    GoogleSheetsClient,
    GoogleSheetsKeyValueStore,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueStore,
    StorageConnectionError,
    StorageError,
    create_store,
)

__all__ = [
    # Image services
    "CaptureImageService",
    "ImageRejectedError",
    # OCR services
    "NoNumericContentError",
    "OCRError",
    "OcrSpaceService",
    "OcrUnavailableError",
    # Storage services
    "CorruptDataError",
    "GoogleSheetsClient",
    "GoogleSheetsKeyValueStore",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "StorageConnectionError",
    "StorageError",
    "create_store",
]
