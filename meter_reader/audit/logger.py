"""
Audit Logger

Sink for AuditEvents. Flows hand every event here:
- it is written to the structured (JSON) log
- it is kept in a bounded in-memory history, newest last

Writing never raises. Events of one capture share a correlation id.
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from meter_reader.models.audit import AuditEvent, AuditEventBuilder, AuditEventType


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Writes audit events and remembers the recent ones.

    Destinations:
    1. structlog (JSON lines)
    2. An in-memory history (for the settings screen and for tests)
    """

    def __init__(self, history_limit: int = 1000):
        self._logger = structlog.get_logger(__name__)
        self._history: list[AuditEvent] = []
        self._history_limit = history_limit

    @property
    def history(self) -> list[AuditEvent]:
        return list(self._history)

    def events_of_type(self, event_type: AuditEventType) -> list[AuditEvent]:
        return [e for e in self._history if e.event_type == event_type]

    def log(self, event: AuditEvent) -> None:
        """Log an audit event."""
        log_dict = event.to_log_dict()

        try:
            if event.severity.value in ("error", "critical"):
                self._logger.error("audit_event", **log_dict)
            elif event.severity.value == "warning":
                self._logger.warning("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # Audit logging should not break the main flow
            print(f"WARNING: Failed to write audit event: {e}")

        self._history.append(event)
        if len(self._history) > self._history_limit:
            del self._history[: len(self._history) - self._history_limit]

    def log_meter_added(self, meter_id: UUID, name: str, number: str) -> None:
        self.log(AuditEventBuilder.meter_added(meter_id, name, number))

    def log_meter_updated(self, meter_id: UUID, name: str, number: str) -> None:
        self.log(AuditEventBuilder.meter_updated(meter_id, name, number))

    def log_meter_deleted(self, meter_id: UUID, removed_readings: int) -> None:
        self.log(AuditEventBuilder.meter_deleted(meter_id, removed_readings))

    def log_reset_day_changed(self, reset_day: int) -> None:
        self.log(AuditEventBuilder.reset_day_changed(reset_day))

    def log_reading_saved(
        self,
        reading_id: int,
        meter_id: UUID,
        value: float,
        has_image: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a saved reading."""
        event = AuditEventBuilder.reading_saved(
            reading_id=reading_id,
            meter_id=meter_id,
            value=value,
            has_image=has_image,
            correlation_id=correlation_id,
        )
        self.log(event)

    def log_ocr_started(self, attempt: int, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.ocr_started(attempt, correlation_id))

    def log_ocr_completed(
        self,
        attempt: int,
        suggested_reading: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.ocr_completed(attempt, suggested_reading, correlation_id))

    def log_ocr_failed(self, attempt: int, reason: str, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.ocr_failed(attempt, reason, correlation_id))

    def log_ocr_discarded(
        self,
        attempt: int,
        latest_attempt: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.ocr_result_discarded(attempt, latest_attempt, correlation_id))

    def log_export_completed(self, row_count: int) -> None:
        self.log(AuditEventBuilder.export_completed(row_count))

    def log_import_completed(
        self,
        imported: int,
        new_meters: int,
        skipped_rows: int,
    ) -> None:
        self.log(AuditEventBuilder.import_completed(imported, new_meters, skipped_rows))

    def log_import_failed(self, reason: str) -> None:
        self.log(AuditEventBuilder.import_failed(reason))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        self.log(event)

    def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """A call to OCR, storage or another outside service failed."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        self.log(event)


def create_correlation_id() -> UUID:
    """
    New id for a group of related events.

    Minted per capture attempt; every event of that attempt carries it.
    """
    return uuid4()
