"""
Audit Models for Meter Reader

Each meter change, saved reading, OCR call and transfer produces one event.
Events let us:
1. Trace how a meter and its readings came to look the way they do
2. See why an OCR attempt or an import failed
3. Follow a single capture from photo to saved reading (correlation ids)

Events are only ever appended; nothing edits or removes them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every mutating operation and every external call has its own event type.
    """
    # Meter management
    METER_ADDED = "meter_added"
    METER_UPDATED = "meter_updated"
    METER_DELETED = "meter_deleted"
    RESET_DAY_CHANGED = "reset_day_changed"

    # Capture
    READING_SAVED = "reading_saved"
    OCR_STARTED = "ocr_started"
    OCR_COMPLETED = "ocr_completed"
    OCR_FAILED = "ocr_failed"
    OCR_RESULT_DISCARDED = "ocr_result_discarded"

    # Transfer
    EXPORT_COMPLETED = "export_completed"
    IMPORT_COMPLETED = "import_completed"
    IMPORT_FAILED = "import_failed"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    One entry in the audit trail.
    Built through AuditEventBuilder rather than by hand.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.now,
        description="When the event occurred (local time)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Subject of the event
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'meter', 'reading', 'import')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Groups the events of one capture attempt
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one capture attempt)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Set for failures only
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Static constructors for the events the flows emit.

    Usage:
        event = AuditEventBuilder.meter_added(meter_id, "Main House", "A-1")
        event = AuditEventBuilder.ocr_completed(attempt, "048213", correlation_id)
    """

    @staticmethod
    def meter_added(meter_id: UUID, name: str, number: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.METER_ADDED,
            entity_type="meter",
            entity_id=str(meter_id),
            description=f"Meter added: {name} (#{number})",
            details={"name": name, "number": number},
            is_user_action=True,
        )

    @staticmethod
    def meter_updated(meter_id: UUID, name: str, number: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.METER_UPDATED,
            entity_type="meter",
            entity_id=str(meter_id),
            description=f"Meter updated: {name} (#{number})",
            details={"name": name, "number": number},
            is_user_action=True,
        )

    @staticmethod
    def meter_deleted(meter_id: UUID, removed_readings: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.METER_DELETED,
            entity_type="meter",
            entity_id=str(meter_id),
            description=f"Meter deleted with {removed_readings} readings",
            details={"removed_readings": removed_readings},
            is_user_action=True,
        )

    @staticmethod
    def reset_day_changed(reset_day: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RESET_DAY_CHANGED,
            entity_type="settings",
            description=f"Monthly reset day set to {reset_day}",
            details={"reset_day": reset_day},
            is_user_action=True,
        )

    @staticmethod
    def reading_saved(
        reading_id: int,
        meter_id: UUID,
        value: float,
        has_image: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.READING_SAVED,
            entity_type="reading",
            entity_id=str(reading_id),
            correlation_id=correlation_id,
            description=f"Reading saved: {value}",
            details={
                "meter_id": str(meter_id),
                "value": value,
                "has_image": has_image,
            },
            is_user_action=True,
        )

    @staticmethod
    def ocr_started(attempt: int, correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OCR_STARTED,
            entity_type="capture",
            entity_id=str(attempt),
            correlation_id=correlation_id,
            description=f"OCR started for capture attempt {attempt}",
        )

    @staticmethod
    def ocr_completed(
        attempt: int,
        suggested_reading: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OCR_COMPLETED,
            entity_type="capture",
            entity_id=str(attempt),
            correlation_id=correlation_id,
            description=f"OCR suggested reading {suggested_reading}",
            details={"suggested_reading": suggested_reading},
        )

    @staticmethod
    def ocr_failed(
        attempt: int,
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OCR_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="capture",
            entity_id=str(attempt),
            correlation_id=correlation_id,
            description="OCR could not produce a reading",
            error_message=reason,
        )

    @staticmethod
    def ocr_result_discarded(
        attempt: int,
        latest_attempt: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OCR_RESULT_DISCARDED,
            entity_type="capture",
            entity_id=str(attempt),
            correlation_id=correlation_id,
            description=f"Stale OCR result for attempt {attempt} discarded",
            details={"latest_attempt": latest_attempt},
        )

    @staticmethod
    def export_completed(row_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPORT_COMPLETED,
            entity_type="export",
            description=f"Exported {row_count} readings",
            details={"row_count": row_count},
            is_user_action=True,
        )

    @staticmethod
    def import_completed(
        imported: int,
        new_meters: int,
        skipped_rows: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_COMPLETED,
            entity_type="import",
            description=f"Imported {imported} readings",
            details={
                "imported": imported,
                "new_meters": new_meters,
                "skipped_rows": skipped_rows,
            },
            is_user_action=True,
        )

    @staticmethod
    def import_failed(reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="import",
            description="Import could not proceed",
            error_message=reason,
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Unexpected failure ({error_type})",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"{service} call failed",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
