"""Next-run computation for recurring actions."""

from __future__ import annotations

import calendar
from datetime import datetime, timedelta

from .models import RecurringPattern


def add_months(when: datetime, months: int) -> datetime:
    """Advance by calendar months, keeping the time of day.

    A day-of-month that does not exist in the target month is clamped to that
    month's last day: Jan 31 + 1 month is Feb 29 in a leap year, Feb 28 otherwise.
    """
    index = when.month - 1 + months
    year = when.year + index // 12
    month = index % 12 + 1
    day = min(when.day, calendar.monthrange(year, month)[1])
    return when.replace(year=year, month=month, day=day)


def next_run_at(pattern: RecurringPattern, now: datetime) -> datetime:
    """Return ``now`` advanced by exactly one unit of ``pattern``."""
    match pattern:
        case RecurringPattern.DAILY:
            return now + timedelta(days=1)
        case RecurringPattern.WEEKLY:
            return now + timedelta(days=7)
        case RecurringPattern.MONTHLY:
            return add_months(now, 1)
        case RecurringPattern.QUARTERLY:
            return add_months(now, 3)
        case RecurringPattern.YEARLY:
            return add_months(now, 12)
    raise ValueError(f"Unknown recurring pattern: {pattern!r}")
