"""
DateTime utilities for billing operations.

This module provides timezone-aware "now" helpers, due date calculation and
the inclusive date-range check used when filtering examinations.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

DEFAULT_DUE_DAYS = 30


def get_current_utc() -> datetime:
    """Get the current UTC datetime."""
    return datetime.now(ZoneInfo("UTC"))


def to_naive_utc(dt: datetime) -> datetime:
    """
    Normalize a datetime to naive UTC.

    Aware values are converted to UTC first; naive values are assumed to be
    UTC already (SQLite returns stored timestamps without tzinfo).
    """
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.replace(tzinfo=None)


def to_date(value: datetime | date) -> date:
    """Return the calendar date of a date or datetime (in UTC for aware values)."""
    if isinstance(value, datetime):
        return to_naive_utc(value).date()
    return value


def calculate_due_date(issued_at: datetime | date, due_days: int = DEFAULT_DUE_DAYS) -> date:
    """
    Calculate an invoice due date.

    Args:
        issued_at: Issue timestamp or date
        due_days: Payment window in days, must not be negative

    Returns:
        The issue date shifted by ``due_days``

    Raises:
        ValueError: If ``due_days`` is negative
    """
    if due_days < 0:
        raise ValueError("Due days cannot be negative")
    return to_date(issued_at) + timedelta(days=due_days)


def is_within_range(
    value: date, start: Optional[date] = None, end: Optional[date] = None
) -> bool:
    """Check whether ``value`` lies in the range, both bounds inclusive."""
    if start is not None and value < start:
        return False
    if end is not None and value > end:
        return False
    return True
