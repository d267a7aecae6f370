"""
Consumption Engine

DESIGN DECISION: Consumption is DERIVED, never stored.
It is recomputed from the raw reading log every time it is asked for,
so edits to the reset day or late imports are reflected immediately.

All functions here are pure: same readings in, same numbers out,
regardless of the order the readings arrive in.
"""

from collections import defaultdict
from datetime import datetime
from typing import Iterable, Optional, Sequence
from uuid import UUID

from meter_reader.models.meter import Meter, MeterSummary, Reading


def _chronological_key(reading: Reading) -> tuple[datetime, int]:
    # Readings sharing a timestamp fall back to creation order
    return reading.date, reading.id


def consumption_since(readings: Iterable[Reading], period_start: datetime) -> float:
    """
    Net consumption of one meter since `period_start`.

    Returns 0.0 when fewer than two readings fall inside the period: with a
    single data point there is no delta to report yet.
    """
    in_period = sorted(
        (r for r in readings if r.date >= period_start),
        key=_chronological_key,
    )
    if len(in_period) < 2:
        return 0.0

    return round(in_period[-1].reading - in_period[0].reading, 2)


def latest_reading(readings: Iterable[Reading]) -> Optional[Reading]:
    """Most recent reading, or None for an empty log."""
    return max(readings, key=_chronological_key, default=None)


def summarize(
    meters: Sequence[Meter],
    readings: Iterable[Reading],
    period_start: datetime,
) -> list[MeterSummary]:
    """
    Build the per-meter report for the current period.

    Meters keep their registry order; readings whose meter is not in
    `meters` are ignored.
    """
    by_meter: dict[UUID, list[Reading]] = defaultdict(list)
    for reading in readings:
        by_meter[reading.meter_id].append(reading)

    summaries = []
    for meter in meters:
        meter_readings = by_meter.get(meter.id, [])
        latest = latest_reading(meter_readings)
        summaries.append(MeterSummary(
            meter=meter,
            period_start=period_start,
            latest_reading=latest.reading if latest else None,
            consumption=consumption_since(meter_readings, period_start),
        ))
    return summaries
