"""
Main Orchestrator for Meter Reader

This module ties together all the components and defines the
end-to-end flows for:
1. Capture (photo → OCR → suggested reading → user confirms → save)
2. Meter management and the per-meter consumption report
3. Transfer (CSV export, CSV import → merge)

DESIGN DECISION: The orchestrator enforces the boundaries:
- OCR only ever pre-fills the form; nothing is saved without the user
- An OCR failure never blocks saving a manually typed reading
- A stale OCR result never overwrites a newer capture
- Imports are merged only after the whole file parsed
- Every step is audited
"""

import asyncio
from datetime import datetime
from pathlib import Path
from typing import Optional, Union
from uuid import UUID

import structlog

from meter_reader.audit import AuditLogger, create_correlation_id
from meter_reader.config import get_settings
from meter_reader.config.settings import AppSettings
from meter_reader.models.meter import (
    CaptureState,
    ImportResult,
    Meter,
    MeterSummary,
    Reading,
)
from meter_reader.registry import (
    DuplicateMeterNumberError,
    InvalidInputError,
    MeterRegistry,
)
from meter_reader.services.image import CaptureImageService, data_url_bytes, to_data_url
from meter_reader.services.ocr import OCRError, OcrSpaceService
from meter_reader.services.storage import (
    InMemoryKeyValueStore,
    KeyValueStore,
    StorageError,
    create_store,
)
from meter_reader.transfer import ImportFailedError, TransferError, parse, serialize
from meter_reader.validation import parse_manual_reading

logger = structlog.get_logger(__name__)

OCR_FAILED_MESSAGE = "Failed to read meter. Please enter value manually."


class CaptureFlow:
    """
    Orchestrates taking a reading.

    Flow:
    1. Capture → photo is validated and stored as a JPEG data URL
    2. Recognize → OCR suggests a value (may fail, may be slow)
    3. Review → user keeps or overwrites the suggestion
    4. Save → reading appended to the registry

    Every capture bumps the attempt counter. A recognition result is only
    applied if its attempt is still the latest one.
    """

    def __init__(
        self,
        registry: MeterRegistry,
        ocr_service: Optional[OcrSpaceService] = None,
        image_service: Optional[CaptureImageService] = None,
        audit_logger: Optional[AuditLogger] = None,
        ocr_timeout_seconds: Optional[float] = None,
    ):
        self._registry = registry
        self._ocr_service = ocr_service or OcrSpaceService()
        self._image_service = image_service or CaptureImageService()
        self._audit_logger = audit_logger
        self._ocr_timeout = ocr_timeout_seconds or get_settings().ocr.timeout_seconds
        self._state = CaptureState()
        self._correlation_ids: dict[int, UUID] = {}

    @property
    def state(self) -> CaptureState:
        return self._state.model_copy()

    def _next_attempt(self) -> int:
        attempt = self._state.attempt + 1
        self._correlation_ids = {attempt: create_correlation_id()}
        return attempt

    def begin_capture(self, image_bytes: bytes) -> int:
        """
        Start a new capture attempt with a fresh photo.

        Any recognition still running for an older attempt becomes stale.

        Returns:
            The attempt token to pass to recognize()

        Raises:
            ImageRejectedError: The photo cannot be used
        """
        jpeg = self._image_service.prepare(image_bytes)
        attempt = self._next_attempt()
        self._state = CaptureState(
            attempt=attempt,
            image=to_data_url(jpeg),
            is_processing=True,
        )
        return attempt

    def retake(self) -> None:
        """Clear the photo and the suggestion; pending OCR results are ignored."""
        self._state = CaptureState(attempt=self._next_attempt())

    async def recognize(self, attempt: int) -> CaptureState:
        """
        Run OCR for a capture attempt and apply the result if still current.

        Failures (service down, timeout, no digits) leave the reading field
        empty and set an error message; they never raise.
        """
        if attempt != self._state.attempt or not self._state.image:
            return self.state

        correlation_id = self._correlation_ids.get(attempt) or create_correlation_id()
        image_bytes = data_url_bytes(self._state.image)

        if self._audit_logger:
            self._audit_logger.log_ocr_started(attempt, correlation_id)

        suggestion: Optional[str] = None
        failure: Optional[str] = None
        try:
            suggestion = await asyncio.wait_for(
                self._ocr_service.read_meter(image_bytes),
                timeout=self._ocr_timeout,
            )
        except asyncio.TimeoutError:
            failure = f"OCR timed out after {self._ocr_timeout:g}s"
        except OCRError as e:
            failure = str(e)
        except Exception as e:
            failure = str(e)
            if self._audit_logger:
                self._audit_logger.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )

        if attempt != self._state.attempt:
            # The user retook the photo (or saved) while OCR was running
            if self._audit_logger:
                self._audit_logger.log_ocr_discarded(
                    attempt, self._state.attempt, correlation_id,
                )
            return self.state

        if failure is not None:
            logger.info("ocr_failed", attempt=attempt, reason=failure)
            if self._audit_logger:
                self._audit_logger.log_ocr_failed(attempt, failure, correlation_id)
            self._state = self._state.model_copy(update={
                "suggested_reading": None,
                "ocr_error": OCR_FAILED_MESSAGE,
                "is_processing": False,
            })
        else:
            if self._audit_logger:
                self._audit_logger.log_ocr_completed(attempt, suggestion, correlation_id)
            self._state = self._state.model_copy(update={
                "suggested_reading": suggestion,
                "ocr_error": None,
                "is_processing": False,
            })

        return self.state

    async def capture(self, image_bytes: bytes) -> CaptureState:
        """Convenience: begin a capture and recognize it."""
        attempt = self.begin_capture(image_bytes)
        return await self.recognize(attempt)

    def save(
        self,
        meter_id: Union[UUID, str, None],
        reading_text: Optional[str],
    ) -> Reading:
        """
        Save what the user confirmed.

        `reading_text` is the content of the reading field: the OCR
        suggestion, an edited version of it, or a manual entry.

        Raises:
            InvalidInputError: No meter selected or no usable number
        """
        value = parse_manual_reading(reading_text)
        if meter_id is None or value is None:
            raise InvalidInputError("Please select a meter and provide a reading")

        attempt = self._state.attempt
        reading = self._registry.add_reading(
            meter_id=meter_id,
            value=value,
            image=self._state.image,
        )

        if self._audit_logger:
            self._audit_logger.log_reading_saved(
                reading_id=reading.id,
                meter_id=reading.meter_id,
                value=reading.reading,
                has_image=reading.image is not None,
                correlation_id=self._correlation_ids.get(attempt),
            )

        self._state = CaptureState(attempt=self._next_attempt())
        return reading


class MeterManagementFlow:
    """
    Meter CRUD, the reset day, and the consumption report.

    Validation errors from the registry reach the caller unchanged;
    successful changes are audited.
    """

    def __init__(
        self,
        registry: MeterRegistry,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._registry = registry
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().app

    def add_meter(self, name: str, number: str, last_month_reading: float = 0.0) -> Meter:
        meter = self._registry.add_meter(name, number, last_month_reading)
        if self._audit_logger:
            self._audit_logger.log_meter_added(meter.id, meter.name, meter.number)
        return meter

    def update_meter(
        self,
        meter_id: Union[UUID, str],
        name: str,
        number: str,
        last_month_reading: float,
    ) -> Meter:
        meter = self._registry.update_meter(meter_id, name, number, last_month_reading)
        if self._audit_logger:
            self._audit_logger.log_meter_updated(meter.id, meter.name, meter.number)
        return meter

    def delete_meter(self, meter_id: Union[UUID, str]) -> bool:
        """Delete a meter and its readings; unknown ids are ignored."""
        meter = self._registry.get_meter(meter_id)
        if meter is None:
            return False
        removed = len(self._registry.readings_for(meter.id))
        deleted = self._registry.delete_meter(meter.id)
        if deleted and self._audit_logger:
            self._audit_logger.log_meter_deleted(meter.id, removed)
        return deleted

    def set_reset_day(self, day: int) -> int:
        reset_day = self._registry.set_reset_day(day)
        if self._audit_logger:
            self._audit_logger.log_reset_day_changed(reset_day)
        return reset_day

    def summaries(self, now: Optional[datetime] = None) -> list[MeterSummary]:
        return self._registry.summaries(now)

    def recent_readings(self) -> list[Reading]:
        return self._registry.recent_readings(self._settings.recent_readings_limit)


class TransferFlow:
    """
    Orchestrates CSV export and import.

    Import is all-or-nothing at the file level: parse the whole file first,
    then merge. Malformed rows are skipped and reported in the result.
    """

    def __init__(
        self,
        registry: MeterRegistry,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._registry = registry
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().app

    def export_text(self) -> str:
        """
        Render every reading as CSV.

        Raises:
            TransferError: There is nothing to export
        """
        readings = self._registry.readings
        if not readings:
            raise TransferError("No readings to export.")

        text = serialize(self._registry.meters, readings)
        if self._audit_logger:
            self._audit_logger.log_export_completed(len(readings))
        return text

    async def export_to_file(self, directory: Union[str, Path] = ".") -> Path:
        """Write the export next to `directory` under the configured file name."""
        text = self.export_text()
        path = Path(directory) / self._settings.export_filename
        await asyncio.to_thread(path.write_text, text, encoding="utf-8")
        return path

    def import_text(self, text: str) -> ImportResult:
        """
        Parse and merge an exported file's content.

        Raises:
            ImportFailedError: The file cannot be imported; nothing was merged
        """
        try:
            result = parse(text, self._registry.meters)
            self._registry.merge_import(result)
        except ImportFailedError as e:
            if self._audit_logger:
                self._audit_logger.log_import_failed(str(e))
            raise
        except (DuplicateMeterNumberError, InvalidInputError, StorageError) as e:
            if self._audit_logger:
                self._audit_logger.log_import_failed(str(e))
            raise ImportFailedError(f"Import could not be applied: {e}")

        if self._audit_logger:
            self._audit_logger.log_import_completed(
                imported=result.imported_count,
                new_meters=len(result.new_meters),
                skipped_rows=result.skipped_rows,
            )
        return result

    async def import_file(self, path: Union[str, Path]) -> ImportResult:
        """Read a whole CSV file and import it."""
        try:
            raw = await asyncio.to_thread(Path(path).read_bytes)
            text = raw.decode("utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            if self._audit_logger:
                self._audit_logger.log_import_failed(str(e))
            raise ImportFailedError(f"Error importing file. Please check the format. ({e})")
        return self.import_text(text)


def create_app_components(
    store: Optional[KeyValueStore] = None,
) -> tuple[MeterManagementFlow, CaptureFlow, TransferFlow, MeterRegistry]:
    """
    Factory function to create all application components.

    Args:
        store: Key-value store to use. Defaults to the configured backend;
               if that cannot be opened, an in-memory store is used.

    Returns:
        (meter_flow, capture_flow, transfer_flow, registry)
    """
    settings = get_settings()
    audit_logger = AuditLogger()

    if store is None:
        try:
            store = create_store(settings.storage)
        except Exception as e:
            logger.warning("storage_not_configured", error=str(e))
            audit_logger.log_external_service_error("storage", str(e))
            store = InMemoryKeyValueStore()

    registry = MeterRegistry(
        store=store,
        storage_settings=settings.storage,
        default_reset_day=settings.app.default_reset_day,
    )
    try:
        registry.load()
    except StorageError as e:
        # The app starts read-only; the registry refuses to overwrite the stored data
        logger.error("registry_load_failed", error=str(e))
        audit_logger.log_error("registry_load_failed", str(e))

    meter_flow = MeterManagementFlow(registry, audit_logger, settings.app)
    capture_flow = CaptureFlow(registry, audit_logger=audit_logger)
    transfer_flow = TransferFlow(registry, audit_logger, settings.app)

    return meter_flow, capture_flow, transfer_flow, registry
