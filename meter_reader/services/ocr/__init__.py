"""OCR services package."""

from meter_reader.services.ocr.number_extractor import (
    NoNumericContentError,
    OCRError,
    extract_number,
    find_number_tokens,
)
from meter_reader.services.ocr.ocr_space_service import (
    OcrSpaceService,
    OcrUnavailableError,
)

__all__ = [
    "NoNumericContentError",
    "OCRError",
    "OcrSpaceService",
    "OcrUnavailableError",
    "extract_number",
    "find_number_tokens",
]
