"""
Captured Photo Handling

A meter photo travels through the system as a JPEG data URL
(`data:image/jpeg;base64,...`): that is what the reading log stores, what
the export writes (without the prefix) and what the import rebuilds.

This module:
1. Checks an uploaded photo is a supported, readable image
2. Re-encodes it as a JPEG of the configured quality
3. Converts between raw bytes, data URLs and export payloads
"""

import base64
import binascii
from io import BytesIO
from typing import Optional

from PIL import Image, UnidentifiedImageError

from meter_reader.config import get_settings
from meter_reader.config.settings import AppSettings

DATA_URL_PREFIX = "data:image/jpeg;base64,"

# PIL format name -> extensions accepted in settings
_FORMAT_EXTENSIONS = {
    "JPEG": {"jpg", "jpeg"},
    "PNG": {"png"},
    "WEBP": {"webp"},
}


class ImageRejectedError(Exception):
    """The uploaded file cannot be used as a meter photo."""
    pass


class CaptureImageService:
    """Normalizes captured photos for storage and OCR."""

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def prepare(self, image_bytes: bytes) -> bytes:
        """
        Validate a photo and re-encode it as JPEG.

        Raises:
            ImageRejectedError: Empty, too large, unreadable or unsupported
        """
        if not image_bytes:
            raise ImageRejectedError("The photo is empty")

        if len(image_bytes) > self._settings.max_upload_size_bytes:
            raise ImageRejectedError(
                f"Photo is larger than {self._settings.max_upload_size_mb} MB"
            )

        try:
            img = Image.open(BytesIO(image_bytes))
            img.load()
        except (UnidentifiedImageError, OSError) as e:
            raise ImageRejectedError(f"Could not read the photo: {e}")

        allowed = set(self._settings.supported_formats_list)
        if not (_FORMAT_EXTENSIONS.get(img.format or "", set()) & allowed):
            raise ImageRejectedError(
                f"Unsupported image type: {img.format}. Allowed: {sorted(allowed)}"
            )

        if img.mode != "RGB":
            img = img.convert("RGB")

        out = BytesIO()
        img.save(out, format="JPEG", quality=self._settings.jpeg_quality)
        return out.getvalue()


def to_data_url(jpeg_bytes: bytes) -> str:
    return DATA_URL_PREFIX + base64.b64encode(jpeg_bytes).decode("ascii")


def data_url_payload(image: Optional[str]) -> str:
    """Base64 part of a data URL ('' for no image); bare payloads pass through."""
    if not image:
        return ""
    _, sep, payload = image.partition(",")
    return payload if sep else image


def payload_to_data_url(payload: str) -> Optional[str]:
    """Rebuild the data URL written by the export; None for an empty cell."""
    payload = (payload or "").strip()
    return DATA_URL_PREFIX + payload if payload else None


def data_url_bytes(image: str) -> bytes:
    """
    Decode a data URL back to image bytes.

    Raises:
        ImageRejectedError: If the payload is not valid base64
    """
    try:
        return base64.b64decode(data_url_payload(image), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageRejectedError(f"Stored photo is not valid base64: {e}")
