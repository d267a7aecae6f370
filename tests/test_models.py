"""
Tests for Meter Reader

Test strategy:
1. Unit tests for individual components (models, validators, engine)
2. Integration tests for flows (with fake OCR and in-memory storage)
3. No real API calls in tests (use httpx.MockTransport and fakes)
"""

import pytest
from datetime import datetime, timezone
from uuid import uuid4

from pydantic import ValidationError

from meter_reader.models.meter import (
    MAX_NAME_LENGTH,
    CaptureState,
    ImportResult,
    Meter,
    Reading,
    ValidationIssue,
    ValidationResult,
    next_reading_id,
    now_to_second,
    reserve_reading_ids,
    to_local_naive,
)
from meter_reader.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestMeterModels:
    """Tests for meter and reading models."""

    def test_meter_creation(self):
        """Test Meter model creation."""
        meter = Meter(name="Main House", number="A-1", last_month_reading=100)
        assert meter.name == "Main House"
        assert meter.number == "A-1"
        assert meter.last_month_reading == 100.0
        assert meter.id is not None

    def test_meter_strips_whitespace(self):
        """Test that whitespace is stripped from name and number."""
        meter = Meter(name="  Garage  ", number=" 42 ")
        assert meter.name == "Garage"
        assert meter.number == "42"

    def test_meter_rejects_empty_number(self):
        """Test that a blank number is rejected."""
        with pytest.raises(ValidationError):
            Meter(name="Garage", number="   ")

    def test_meter_is_frozen(self):
        """Test that meters cannot be mutated in place."""
        meter = Meter(name="Garage", number="42")
        with pytest.raises(ValidationError):
            meter.name = "Shed"

    def test_meter_dumps_camel_case(self):
        """Test persisted JSON uses the camelCase field names."""
        meter = Meter(name="Garage", number="42", last_month_reading=5)
        dumped = meter.model_dump(by_alias=True)
        assert "lastMonthReading" in dumped
        assert Meter.model_validate(dumped) == meter

    def test_reading_defaults(self):
        """Test Reading defaults: id, timestamp without microseconds, no image."""
        reading = Reading(meter_id=uuid4(), reading=12.5)
        assert reading.image is None
        assert reading.is_initial_reading is False
        assert reading.date.microsecond == 0

    def test_reading_accepts_camel_case(self):
        """Test a stored reading round-trips through its aliases."""
        meter_id = uuid4()
        reading = Reading.model_validate({
            "id": 7,
            "meterId": str(meter_id),
            "reading": 3,
            "date": "2024-03-01T10:00:00",
            "isInitialReading": True,
        })
        assert reading.meter_id == meter_id
        assert reading.is_initial_reading is True

    def test_reading_ids_strictly_increase(self):
        """Test consecutive ids never repeat, even within one clock tick."""
        ids = [next_reading_id() for _ in range(50)]
        assert ids == sorted(ids)
        assert len(set(ids)) == len(ids)

    def test_reserve_reading_ids(self):
        """Test that ids allocated after a reservation sort after it."""
        far_future = next_reading_id() + 10**15
        reserve_reading_ids(far_future)
        assert next_reading_id() > far_future

    def test_now_to_second(self):
        """Test the clock helper drops microseconds."""
        assert now_to_second().microsecond == 0

    def test_reading_date_drops_microseconds(self):
        """Test an explicit date is truncated to whole seconds."""
        reading = Reading(meter_id=uuid4(), reading=1, date=datetime(2024, 3, 1, 10, 0, 0, 999999))
        assert reading.date == datetime(2024, 3, 1, 10, 0, 0)

    def test_reading_date_is_naive_local(self):
        """Test an aware date is converted to naive local time."""
        aware = datetime(2024, 3, 1, 10, 0, 0, tzinfo=timezone.utc)
        reading = Reading(meter_id=uuid4(), reading=1, date=aware)
        assert reading.date.tzinfo is None
        assert reading.date == to_local_naive(aware)
        assert reading.date == aware.astimezone().replace(tzinfo=None)

    def test_meter_name_length_limit(self):
        """Test the model refuses names over the limit."""
        with pytest.raises(ValidationError):
            Meter(name="x" * (MAX_NAME_LENGTH + 1), number="42")


class TestResultModels:
    """Tests for import results and capture state."""

    def test_import_result_counts(self):
        """Test imported_count reflects the new readings."""
        meter = Meter(name="Garage", number="42")
        result = ImportResult(
            new_meters=[meter],
            new_readings=[Reading(meter_id=meter.id, reading=1)],
            skipped_rows=2,
        )
        assert result.imported_count == 1
        assert result.skipped_rows == 2

    def test_import_result_rejects_negative_skips(self):
        """Test skipped_rows cannot be negative."""
        with pytest.raises(ValueError):
            ImportResult(skipped_rows=-1)

    def test_capture_state_empty_suggestion(self):
        """Test an empty suggestion is normalized to None."""
        state = CaptureState(attempt=1, suggested_reading="")
        assert state.suggested_reading is None


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.READING_SAVED,
            description="Test reading saved",
        )
        assert event.event_type == AuditEventType.READING_SAVED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.IMPORT_COMPLETED,
            description="Import done",
            details={"imported": 3},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "import_completed"
        assert log_dict["details"]["imported"] == 3

    def test_audit_event_builder_meter_added(self):
        """Test AuditEventBuilder.meter_added."""
        meter_id = uuid4()
        event = AuditEventBuilder.meter_added(meter_id, "Main House", "A-1")

        assert event.event_type == AuditEventType.METER_ADDED
        assert event.entity_id == str(meter_id)
        assert event.is_user_action is True

    def test_audit_event_builder_ocr_discarded(self):
        """Test AuditEventBuilder.ocr_result_discarded."""
        correlation_id = uuid4()
        event = AuditEventBuilder.ocr_result_discarded(1, 2, correlation_id)

        assert event.event_type == AuditEventType.OCR_RESULT_DISCARDED
        assert event.correlation_id == correlation_id
        assert event.details["latest_attempt"] == 2


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            issues=[
                ValidationIssue(
                    field="number",
                    issue_type="missing",
                    message="Meter number is required",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1
        assert result.first_error().field == "number"

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            issues=[
                ValidationIssue(
                    field="reading",
                    issue_type="unusual",
                    message="Reading is lower than the last one",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0
        assert result.first_error() is None

    def test_validation_issue_rejects_unknown_severity(self):
        """Test severity is limited to error/warning/info."""
        with pytest.raises(ValueError):
            ValidationIssue(field="x", issue_type="y", message="z", severity="fatal")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
