"""
Input Validation

DESIGN DECISION: Validation only REPORTS problems; it never fixes them.
The registry turns error-level issues into exceptions before touching state,
so a rejected form leaves everything exactly as it was.

Checks:
- Meter name and number present after trimming, and not over-long
- Meter number unique among live meters
- Baseline and reading values are finite numbers
"""

import math
from typing import Any, Iterable, Optional
from uuid import UUID

from meter_reader.models.meter import (
    MAX_NAME_LENGTH,
    MAX_NUMBER_LENGTH,
    Meter,
    ValidationIssue,
    ValidationResult,
)


def is_finite_number(value: Any) -> bool:
    """True for int/float values that are not NaN or infinite (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def parse_manual_reading(text: Optional[str]) -> Optional[float]:
    """
    Parse what the user typed (or OCR pre-filled) into the reading field.

    Returns None for empty or non-numeric input.
    """
    if text is None:
        return None
    cleaned = text.strip().replace(",", ".")
    if not cleaned:
        return None
    try:
        value = float(cleaned)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


class MeterValidator:
    """Validates meter forms and reading values."""

    def validate_meter(
        self,
        name: Optional[str],
        number: Optional[str],
        last_month_reading: Any,
        existing_meters: Iterable[Meter],
        exclude_id: Optional[UUID] = None,
    ) -> ValidationResult:
        """
        Validate an add/edit meter form.

        Args:
            name: Display name as typed
            number: Meter number as typed
            last_month_reading: Baseline value
            existing_meters: Live meters to check uniqueness against
            exclude_id: Meter being edited (not a duplicate of itself)
        """
        issues = []
        name = (name or "").strip()
        number = (number or "").strip()

        if not name:
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Meter name is required",
                severity="error",
            ))
        elif len(name) > MAX_NAME_LENGTH:
            issues.append(ValidationIssue(
                field="name",
                issue_type="too_long",
                message=f"Meter name cannot be longer than {MAX_NAME_LENGTH} characters",
                severity="error",
            ))

        if not number:
            issues.append(ValidationIssue(
                field="number",
                issue_type="missing",
                message="Meter number is required",
                severity="error",
            ))
        elif len(number) > MAX_NUMBER_LENGTH:
            issues.append(ValidationIssue(
                field="number",
                issue_type="too_long",
                message=f"Meter number cannot be longer than {MAX_NUMBER_LENGTH} characters",
                severity="error",
            ))
        elif any(
            m.number == number and m.id != exclude_id
            for m in existing_meters
        ):
            issues.append(ValidationIssue(
                field="number",
                issue_type="duplicate",
                message=f"A meter with number {number} already exists",
                severity="error",
            ))

        if not is_finite_number(last_month_reading):
            issues.append(ValidationIssue(
                field="last_month_reading",
                issue_type="not_finite",
                message="Previous month's reading must be a number",
                severity="error",
            ))
        elif last_month_reading < 0:
            issues.append(ValidationIssue(
                field="last_month_reading",
                issue_type="negative",
                message="Previous month's reading cannot be negative",
                severity="error",
            ))

        return ValidationResult(issues=issues)

    def validate_reading_value(self, value: Any) -> ValidationResult:
        """A reading must be a finite number; anything else is rejected."""
        issues = []
        if not is_finite_number(value):
            issues.append(ValidationIssue(
                field="reading",
                issue_type="not_finite",
                message="Reading must be a finite number",
                severity="error",
            ))
        return ValidationResult(issues=issues)
