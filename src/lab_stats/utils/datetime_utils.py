"""
Datetime utilities for consistent timezone handling across the statistics engine.

This module provides utilities to ensure all datetime operations use timezone-aware
datetimes consistently. Month and year boundaries are evaluated in the laboratory
timezone, so a case created late on the last day of a month lands in that month
regardless of how the database stored it.
"""

import logging
from calendar import monthrange
from datetime import datetime, timezone, timedelta, date, time
from typing import Optional, Tuple, Union

from lab_stats.core.config import LAB_UTC_OFFSET_HOURS

logger = logging.getLogger(__name__)

# Laboratory timezone constant
LAB_TZ = timezone(timedelta(hours=LAB_UTC_OFFSET_HOURS))


def lab_now() -> datetime:
    """
    Get current laboratory datetime.

    Returns:
        Current datetime with the laboratory timezone
    """
    return datetime.now(LAB_TZ)


def ensure_lab_tz(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure a datetime is timezone-aware in the laboratory timezone.

    Naive datetimes are assumed to already be laboratory wall-clock time.

    Args:
        dt: Datetime to localize or convert

    Returns:
        Timezone-aware datetime in the laboratory timezone, or None if input is None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=LAB_TZ)
    else:
        return dt.astimezone(LAB_TZ)


def parse_datetime_string_to_lab_tz(dt_str: str) -> datetime:
    """
    Parse an ISO format datetime string and convert to the laboratory timezone.

    Handles various datetime string formats:
    - ISO format with timezone (e.g., "2025-01-01T09:00:00-04:00")
    - ISO format with Z (UTC) (e.g., "2025-01-01T13:00:00Z")
    - ISO format without timezone (assumes laboratory time)

    Raises:
        ValueError: If datetime string cannot be parsed
    """
    try:
        dt = datetime.fromisoformat(dt_str.strip().replace('Z', '+00:00'))
    except ValueError as e:
        raise ValueError(f"Invalid datetime string format: {dt_str}") from e
    return ensure_lab_tz(dt)  # type: ignore[return-value]


def start_of_day(d: Union[date, datetime]) -> datetime:
    """First instant of the given day in the laboratory timezone."""
    if isinstance(d, datetime):
        d = ensure_lab_tz(d).date()  # type: ignore[union-attr]
    return datetime.combine(d, time.min, tzinfo=LAB_TZ)


def end_of_day(d: Union[date, datetime]) -> datetime:
    """Last instant (23:59:59.999999) of the given day in the laboratory timezone."""
    if isinstance(d, datetime):
        d = ensure_lab_tz(d).date()  # type: ignore[union-attr]
    return datetime.combine(d, time.max, tzinfo=LAB_TZ)


def month_bounds(year: int, month: int) -> Tuple[datetime, datetime]:
    """
    Get the first and last instant of a calendar month.

    Returns:
        (start, end) tuple, both in the laboratory timezone
    """
    _, last_day = monthrange(year, month)
    return start_of_day(date(year, month, 1)), end_of_day(date(year, month, last_day))


def year_bounds(year: int) -> Tuple[datetime, datetime]:
    """First and last instant of a calendar year in the laboratory timezone."""
    return start_of_day(date(year, 1, 1)), end_of_day(date(year, 12, 31))


def get_month_key(d: Union[date, datetime]) -> str:
    """Get month key in format YYYY-MM."""
    return f"{d.year}-{d.month:02d}"
