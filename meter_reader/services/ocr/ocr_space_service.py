"""
OCR Service using OCR.space

DESIGN DECISION: We use the OCR.space HTTP API because:
1. It works from a plain multipart POST, no SDK needed
2. It has a free tier with a public demo key
3. Engine 2 handles seven-segment style digits reasonably well

This service handles:
1. Sending the captured photo with fixed recognition options
2. Detecting failures (HTTP errors and the API's own error flag)
3. Returning the raw recognized text

It does NOT decide what the reading is - that is the number extractor's job,
and the user confirms the result anyway.
"""

from typing import Optional

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from meter_reader.config import get_settings
from meter_reader.config.settings import OcrSettings
from meter_reader.services.ocr.number_extractor import OCRError, extract_number

logger = structlog.get_logger(__name__)


class OcrUnavailableError(OCRError):
    """The OCR service failed or could not be reached."""
    pass


class OcrSpaceService:
    """
    Thin async client for the OCR.space parse endpoint.

    IMPORTANT BOUNDARIES:
    1. Only transport failures are retried; an answer from the API is final
    2. Every failure surfaces as OcrUnavailableError
    """

    def __init__(
        self,
        settings: Optional[OcrSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._settings = settings or get_settings().ocr
        self._transport = transport

    def _form_fields(self) -> dict[str, str]:
        return {
            "apikey": self._settings.api_key,
            "language": self._settings.language,
            "isOverlayRequired": "false",
            "detectOrientation": "false",
            "isTable": "false",
            "scale": "true",
            "OCREngine": str(self._settings.engine),
        }

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _post(self, image_bytes: bytes, filename: str) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=self._settings.timeout_seconds,
            transport=self._transport,
        ) as client:
            return await client.post(
                self._settings.api_url,
                data=self._form_fields(),
                files={"file": (filename, image_bytes, "image/jpeg")},
            )

    async def extract_text(self, image_bytes: bytes, filename: str = "meter.jpg") -> str:
        """
        Recognize the text in a meter photo.

        Args:
            image_bytes: JPEG bytes of the photo
            filename: Name reported to the API

        Returns:
            The recognized text (may be empty)

        Raises:
            OcrUnavailableError: Network failure, non-2xx status, or an
                error reported by the API
        """
        try:
            response = await self._post(image_bytes, filename)
        except httpx.HTTPError as e:
            raise OcrUnavailableError(f"OCR service unreachable: {e}")

        if not response.is_success:
            raise OcrUnavailableError(
                f"OCR API failed with status: {response.status_code}"
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise OcrUnavailableError(f"OCR API returned invalid JSON: {e}")

        if payload.get("IsErroredOnProcessing"):
            message = payload.get("ErrorMessage") or "OCR processing error"
            if isinstance(message, list):
                message = "; ".join(str(m) for m in message)
            raise OcrUnavailableError(str(message))

        results = payload.get("ParsedResults") or []
        text = (results[0].get("ParsedText") or "") if results else ""
        logger.debug("ocr_text_received", characters=len(text))
        return text

    async def read_meter(self, image_bytes: bytes) -> str:
        """
        Recognize a photo and return the suggested reading.

        Raises:
            OcrUnavailableError: See extract_text
            NoNumericContentError: The text contains no number
        """
        text = await self.extract_text(image_bytes)
        return extract_number(text)
