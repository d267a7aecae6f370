"""
Billing Period Resolution

A billing period starts on the configured reset day of a month and runs until
the same day of the next month. The reset day is limited to 1..28 so every
month has it.

The boundary is always computed from "now"; nothing here is cached.
"""

from datetime import datetime

MIN_RESET_DAY = 1
MAX_RESET_DAY = 28


def clamp_reset_day(reset_day: int) -> int:
    """Force a reset day into 1..28."""
    return max(MIN_RESET_DAY, min(MAX_RESET_DAY, int(reset_day)))


def current_period_start(now: datetime, reset_day: int) -> datetime:
    """
    Start of the billing period that contains `now`.

    If today is on or after the reset day, the period began this month;
    otherwise it began on the reset day of the previous month.

    Examples (reset_day=15):
        now = 2024-03-10  ->  2024-02-15 00:00
        now = 2024-03-20  ->  2024-03-15 00:00
        now = 2024-01-10  ->  2023-12-15 00:00
    """
    day = clamp_reset_day(reset_day)
    year, month = now.year, now.month

    if now.day < day:
        month -= 1
        if month == 0:
            month = 12
            year -= 1

    return datetime(year, month, day, tzinfo=now.tzinfo)
