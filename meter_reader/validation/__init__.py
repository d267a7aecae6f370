"""Input validation package."""

from meter_reader.validation.validator import (
    MeterValidator,
    is_finite_number,
    parse_manual_reading,
)

__all__ = ["MeterValidator", "is_finite_number", "parse_manual_reading"]
