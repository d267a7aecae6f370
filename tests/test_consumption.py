"""Tests for billing period resolution and consumption calculation."""

import pytest
from datetime import datetime
from uuid import uuid4

from meter_reader.consumption import (
    clamp_reset_day,
    consumption_since,
    current_period_start,
    latest_reading,
    summarize,
)
from meter_reader.models.meter import Meter, Reading


class TestPeriod:
    """Tests for current_period_start."""

    def test_before_reset_day_uses_previous_month(self):
        """Test March 10 with reset day 15 starts on February 15."""
        start = current_period_start(datetime(2024, 3, 10, 9, 30), 15)
        assert start == datetime(2024, 2, 15)

    def test_after_reset_day_uses_current_month(self):
        """Test March 20 with reset day 15 starts on March 15."""
        start = current_period_start(datetime(2024, 3, 20, 18, 0), 15)
        assert start == datetime(2024, 3, 15)

    def test_on_reset_day_starts_today_at_midnight(self):
        """Test the reset day itself opens a new period."""
        start = current_period_start(datetime(2024, 3, 15, 0, 0, 1), 15)
        assert start == datetime(2024, 3, 15)

    def test_january_rolls_back_to_december(self):
        """Test the year boundary."""
        start = current_period_start(datetime(2024, 1, 10), 15)
        assert start == datetime(2023, 12, 15)

    def test_reset_day_one(self):
        """Test the default reset day always uses the current month."""
        start = current_period_start(datetime(2024, 7, 1, 12), 1)
        assert start == datetime(2024, 7, 1)

    @pytest.mark.parametrize("raw,expected", [(0, 1), (-5, 1), (1, 1), (28, 28), (31, 28)])
    def test_clamp_reset_day(self, raw, expected):
        """Test reset days are forced into 1..28."""
        assert clamp_reset_day(raw) == expected


class TestConsumption:
    """Tests for the consumption engine."""

    PERIOD_START = datetime(2024, 3, 1)

    def _reading(self, value, day, hour=12, **kwargs):
        return Reading(
            meter_id=kwargs.pop("meter_id", uuid4()),
            reading=value,
            date=datetime(2024, 3, day, hour),
            **kwargs,
        )

    def test_first_to_last_in_period(self):
        """Test consumption is last minus first reading in the period."""
        meter_id = uuid4()
        readings = [
            self._reading(100, 2, meter_id=meter_id),
            self._reading(120, 10, meter_id=meter_id),
            self._reading(140, 20, meter_id=meter_id),
        ]
        assert consumption_since(readings, self.PERIOD_START) == 40.0

    def test_order_independent(self):
        """Test the log order does not change the result."""
        meter_id = uuid4()
        readings = [
            self._reading(140, 20, meter_id=meter_id),
            self._reading(100, 2, meter_id=meter_id),
            self._reading(120, 10, meter_id=meter_id),
        ]
        assert consumption_since(readings, self.PERIOD_START) == 40.0

    def test_single_reading_is_zero(self):
        """Test one reading in the period gives no consumption yet."""
        readings = [self._reading(100, 2)]
        assert consumption_since(readings, self.PERIOD_START) == 0.0

    def test_readings_before_period_ignored(self):
        """Test readings before the period start do not count."""
        meter_id = uuid4()
        readings = [
            Reading(meter_id=meter_id, reading=50, date=datetime(2024, 2, 20)),
            self._reading(100, 2, meter_id=meter_id),
        ]
        assert consumption_since(readings, self.PERIOD_START) == 0.0

    def test_reading_exactly_at_period_start_counts(self):
        """Test the period start is inclusive (initial readings sit there)."""
        meter_id = uuid4()
        readings = [
            Reading(meter_id=meter_id, reading=100, date=self.PERIOD_START, is_initial_reading=True),
            self._reading(130.5, 5, meter_id=meter_id),
        ]
        assert consumption_since(readings, self.PERIOD_START) == 30.5

    def test_rounded_to_two_decimals(self):
        """Test floating point noise is rounded away."""
        meter_id = uuid4()
        readings = [
            self._reading(0.1, 2, meter_id=meter_id),
            self._reading(0.3, 3, meter_id=meter_id),
        ]
        assert consumption_since(readings, self.PERIOD_START) == 0.2

    def test_same_timestamp_uses_creation_order(self):
        """Test readings with equal dates are ordered by id."""
        meter_id = uuid4()
        first = self._reading(100, 5, meter_id=meter_id)
        second = self._reading(90, 5, meter_id=meter_id)
        assert first.id < second.id
        assert consumption_since([second, first], self.PERIOD_START) == -10.0
        assert latest_reading([second, first]) == second

    def test_latest_reading_empty(self):
        """Test no readings gives no latest value."""
        assert latest_reading([]) is None


class TestSummarize:
    """Tests for the per-meter report."""

    def test_summaries_follow_meter_order(self):
        """Test every meter gets a line, in registry order."""
        house = Meter(name="House", number="1")
        garage = Meter(name="Garage", number="2")
        readings = [
            Reading(meter_id=house.id, reading=10, date=datetime(2024, 3, 2)),
            Reading(meter_id=house.id, reading=25, date=datetime(2024, 3, 9)),
            Reading(meter_id=uuid4(), reading=999, date=datetime(2024, 3, 9)),
        ]

        summaries = summarize([house, garage], readings, datetime(2024, 3, 1))

        assert [s.meter.number for s in summaries] == ["1", "2"]
        assert summaries[0].latest_reading == 25
        assert summaries[0].consumption == 15.0
        assert summaries[1].latest_reading is None
        assert summaries[1].consumption == 0.0
