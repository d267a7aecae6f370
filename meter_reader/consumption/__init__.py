"""Period resolution and consumption calculation package."""

from meter_reader.consumption.engine import consumption_since, latest_reading, summarize
from meter_reader.consumption.period import (
    MAX_RESET_DAY,
    MIN_RESET_DAY,
    clamp_reset_day,
    current_period_start,
)

__all__ = [
    "MAX_RESET_DAY",
    "MIN_RESET_DAY",
    "clamp_reset_day",
    "consumption_since",
    "current_period_start",
    "latest_reading",
    "summarize",
]
