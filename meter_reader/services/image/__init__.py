"""Image services package."""

from meter_reader.services.image.capture import (
    DATA_URL_PREFIX,
    CaptureImageService,
    ImageRejectedError,
    data_url_bytes,
    data_url_payload,
    payload_to_data_url,
    to_data_url,
)

__all__ = [
    "DATA_URL_PREFIX",
    "CaptureImageService",
    "ImageRejectedError",
    "data_url_bytes",
    "data_url_payload",
    "payload_to_data_url",
    "to_data_url",
]
