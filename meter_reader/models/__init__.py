"""
Data Models Package

This package contains all Pydantic models used in the Meter Reader system.
All data flowing through the system must conform to these schemas.
"""

from meter_reader.models.meter import (
    CaptureState,
    ImportResult,
    Meter,
    MeterSummary,
    Reading,
    ValidationIssue,
    ValidationResult,
    next_reading_id,
    reserve_reading_ids,
    now_to_second,
    to_local_naive,
)
from meter_reader.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Meter models
    "CaptureState",
    "ImportResult",
    "Meter",
    "MeterSummary",
    "Reading",
    "ValidationIssue",
    "ValidationResult",
    "next_reading_id",
    "reserve_reading_ids",
    "now_to_second",
    "to_local_naive",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
