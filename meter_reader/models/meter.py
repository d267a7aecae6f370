"""
Core Data Models for Meter Reader

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for the key-value store and the CSV export
4. Support the audit trail

DESIGN DECISION: Persisted records use camelCase aliases so the stored JSON
keeps the same shape as the browser app the data originally came from
(meterId, lastMonthReading, isInitialReading).
"""

import time
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel


_last_reading_id = 0

MAX_NAME_LENGTH = 200
MAX_NUMBER_LENGTH = 100


def next_reading_id() -> int:
    """
    Allocate a reading identifier.

    Identifiers are seeded from the wall clock in nanoseconds and are strictly
    increasing within the process, so they order readings by creation even
    when two readings carry the same timestamp.
    """
    global _last_reading_id
    candidate = time.time_ns()
    if candidate <= _last_reading_id:
        candidate = _last_reading_id + 1
    _last_reading_id = candidate
    return candidate


def reserve_reading_ids(up_to: int) -> None:
    """Make sure future identifiers sort after `up_to` (used after loading)."""
    global _last_reading_id
    _last_reading_id = max(_last_reading_id, up_to)


def now_to_second() -> datetime:
    """Current local time without microseconds (the export keeps seconds only)."""
    return datetime.now().replace(microsecond=0)


def to_local_naive(value: datetime) -> datetime:
    """
    Normalize a timestamp to naive local time with whole seconds.

    Aware values (e.g. ISO strings ending in Z) are converted to the local
    zone first, so every stored date compares with every other.
    """
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value.replace(microsecond=0)


# =============================================================================
# CORE RECORDS
# =============================================================================

class Meter(BaseModel):
    """
    A physical meter the user reads every month.

    CRITICAL: `number` is unique across all live meters.
    The registry enforces this; the model only normalizes whitespace.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: UUID = Field(
        default_factory=uuid4,
        description="Stable meter identifier"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=MAX_NAME_LENGTH,
        description="Display name (e.g., Main House)"
    )
    number: str = Field(
        ...,
        min_length=1,
        max_length=MAX_NUMBER_LENGTH,
        description="Meter number as printed on the device"
    )
    last_month_reading: float = Field(
        default=0.0,
        description="Baseline value the meter showed at the previous reset"
    )


class Reading(BaseModel):
    """
    One value read off a meter.

    Readings form an append-only log: they are never edited after creation,
    and only disappear when their meter is deleted.
    """
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: int = Field(
        default_factory=next_reading_id,
        description="Creation-ordered identifier"
    )
    meter_id: UUID = Field(
        ...,
        description="Meter this reading belongs to"
    )
    reading: float = Field(
        ...,
        description="Value shown on the meter display"
    )
    date: datetime = Field(
        default_factory=now_to_second,
        description="When the reading was taken"
    )
    image: Optional[str] = Field(
        default=None,
        description="Photo of the meter as a data URL"
    )
    is_initial_reading: bool = Field(
        default=False,
        description="Synthesized from the meter's baseline, not captured"
    )

    @field_validator('date')
    @classmethod
    def date_is_local_seconds(cls, v: datetime) -> datetime:
        return to_local_naive(v)


# =============================================================================
# REPORTING / TRANSFER MODELS
# =============================================================================

class MeterSummary(BaseModel):
    """Per-meter line of the consumption report."""

    meter: Meter
    period_start: datetime
    latest_reading: Optional[float] = Field(
        default=None,
        description="Most recent value, or None when the meter has no readings"
    )
    consumption: float = Field(
        default=0.0,
        description="Net consumption since the period start"
    )


class ImportResult(BaseModel):
    """
    Everything one import pass produced.

    Nothing in here has been merged yet - the caller decides whether to
    commit it to the registry.
    """

    new_meters: list[Meter] = Field(default_factory=list)
    new_readings: list[Reading] = Field(default_factory=list)
    skipped_rows: int = Field(
        default=0,
        ge=0,
        description="Rows dropped because they were malformed"
    )

    @property
    def imported_count(self) -> int:
        return len(self.new_readings)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'duplicate', 'not_finite')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Result of validating one user-supplied form."""

    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    def first_error(self) -> Optional[ValidationIssue]:
        return next(
            (issue for issue in self.issues if issue.severity == "error"),
            None,
        )


# =============================================================================
# CAPTURE MODELS
# =============================================================================

class CaptureState(BaseModel):
    """
    What the capture form currently shows.

    `attempt` increases every time a new photo is taken or the form is
    cleared; an OCR result only lands here if it belongs to the latest attempt.
    """

    attempt: int = Field(default=0, ge=0)
    image: Optional[str] = None
    suggested_reading: Optional[str] = None
    ocr_error: Optional[str] = None
    is_processing: bool = False

    @field_validator('suggested_reading')
    @classmethod
    def empty_suggestion_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None
