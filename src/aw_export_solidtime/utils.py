"""Shared time utilities for aw-export-solidtime."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import dateparser

# Wire format used by the Solidtime API for all timestamps
UTC_DATE_TIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

Clock = Callable[[], datetime]


def now() -> datetime:
    """Return the current time as a timezone-aware datetime in the local zone."""
    return datetime.now().astimezone()


def to_local(dt: datetime) -> datetime:
    """Convert a datetime to the local timezone.

    Naive datetimes are assumed to be UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone()


def start_of_day(dt: datetime) -> datetime:
    """Return local midnight of the day containing dt."""
    return to_local(dt).replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(dt: datetime) -> datetime:
    """Return the last representable instant of the local day containing dt."""
    return to_local(dt).replace(hour=23, minute=59, second=59, microsecond=999999)


def sub_milliseconds(dt: datetime, milliseconds: float) -> datetime:
    return dt - timedelta(milliseconds=milliseconds)


def difference_in_milliseconds(later: datetime, earlier: datetime) -> int:
    """Whole milliseconds between two datetimes (negative if later < earlier)."""
    return int((later - earlier) / timedelta(milliseconds=1))


def format_utc(dt: datetime) -> str:
    """Format a datetime as the UTC wire string, e.g. 2025-01-01T09:00:00Z."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).strftime(UTC_DATE_TIME_FORMAT)


def parse_utc(ts: str | datetime) -> datetime:
    """
    Parse a timestamp coming from the API into a timezone-aware datetime.

    Accepts the 'Z' suffix, explicit offsets and naive strings (taken as UTC).

    Args:
        ts: Timestamp as ISO string or datetime object

    Returns:
        Timezone-aware datetime object (UTC unless an offset was given)
    """
    if isinstance(ts, datetime):
        dt = ts
    else:
        dt = datetime.fromisoformat(ts.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def parse_datetime(dt_string: str) -> datetime:
    """
    Parse a human supplied datetime string.

    Supports:
    - ISO format: "2025-01-01T09:00:00Z"
    - Relative dates: "yesterday", "today", "2 hours ago"
    - Simple format: "2025-01-01 09:00" (interpreted as local time)

    Raises:
        ValueError: If the string cannot be parsed
    """
    dt = dateparser.parse(
        dt_string,
        settings={
            "RETURN_AS_TIMEZONE_AWARE": True,
            "TIMEZONE": "local",
        },
    )

    if dt is None:
        raise ValueError(f"Unable to parse datetime string: {dt_string}")

    return dt


def format_duration(duration: timedelta) -> str:
    """Format a duration the way the status line shows it: '1 hrs 5 mins'."""
    total_minutes = max(int(duration.total_seconds()), 0) // 60
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours} hrs {minutes} mins"


def ts2strtime(ts: datetime | None) -> str:
    """Format a datetime as local time-only string (HH:MM:SS)."""
    if not ts:
        return "XX:XX:XX"
    return to_local(ts).strftime("%H:%M:%S")
