"""
Datetime utilities for consistent timezone handling across the application.

All instants are stored and compared in UTC. Local time only appears when a
caller supplies an explicit UTC offset for presentation or past-slot checks;
the server's own timezone is never consulted.
"""

import logging
from datetime import datetime, timezone, timedelta, date, time
from typing import Optional

logger = logging.getLogger(__name__)

UTC = timezone.utc


def utc_now() -> datetime:
    """
    Get current UTC datetime.

    This is the clock collaborator for the whole application. Services accept
    an optional ``now`` argument and fall back to this function.

    Returns:
        Current timezone-aware datetime in UTC
    """
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure a datetime is timezone-aware and expressed in UTC.

    Args:
        dt: Datetime to normalise

    Returns:
        Timezone-aware datetime in UTC, or None if input is None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        # Naive values are UTC wall-clock components
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def combine_utc(day: date, at: time) -> datetime:
    """Combine a UTC calendar date and a UTC time-of-day into an instant."""
    return datetime.combine(day, at.replace(tzinfo=None), tzinfo=UTC)


def start_of_day(day: date) -> datetime:
    """Midnight UTC at the start of ``day``."""
    return datetime.combine(day, time(0, 0), tzinfo=UTC)


def format_minutes(minutes: int) -> str:
    """
    Format a minutes-since-midnight value as HH:MM.

    Values of a day or more (slots that wrapped past midnight) are shown as
    the next day's clock time.
    """
    minutes = minutes % (24 * 60)
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def format_time(time_obj: time) -> str:
    """Format time object to HH:MM string."""
    return time_obj.strftime('%H:%M')


def to_caller_local(dt: datetime, utc_offset_minutes: int) -> datetime:
    """
    Shift a UTC instant into a caller-supplied fixed offset.

    Args:
        dt: Instant to convert
        utc_offset_minutes: Caller's offset east of UTC (e.g. -300 for UTC-5)

    Returns:
        Timezone-aware datetime in the caller's fixed offset
    """
    utc_dt = ensure_utc(dt)
    assert utc_dt is not None
    return utc_dt.astimezone(timezone(timedelta(minutes=utc_offset_minutes)))


def validate_utc_offset(utc_offset_minutes: int) -> int:
    """
    Validate a caller-supplied UTC offset.

    Raises:
        ValueError: If the offset is outside the real-world range
    """
    if not -14 * 60 <= utc_offset_minutes <= 14 * 60:
        raise ValueError(f"UTC offset out of range: {utc_offset_minutes} minutes")
    return utc_offset_minutes


def parse_date_string(date_str: str) -> date:
    """
    Parse a date string in YYYY-MM-DD or YYYY/MM/DD format.

    Automatically normalizes single-digit months/days.

    Raises:
        ValueError: If date string cannot be parsed
    """
    if not date_str or not date_str.strip():
        raise ValueError("Date string cannot be empty")

    date_str = date_str.strip()

    if '/' in date_str:
        parts = date_str.split('/')
    elif '-' in date_str:
        parts = date_str.split('-')
    else:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}")

    if len(parts) != 3:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}")

    normalized = f"{parts[0].zfill(4)}-{parts[1].zfill(2)}-{parts[2].zfill(2)}"

    try:
        return datetime.strptime(normalized, '%Y-%m-%d').date()
    except ValueError as e:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}") from e


def parse_time_string(time_str: str) -> time:
    """
    Parse an HH:MM time-of-day string at minute resolution.

    Raises:
        ValueError: If the string is not a valid 24-hour HH:MM value
    """
    try:
        parsed = datetime.strptime(time_str.strip(), '%H:%M')
    except (ValueError, AttributeError) as e:
        raise ValueError(f"Invalid time format (expected HH:MM): {time_str}") from e
    return parsed.time()
