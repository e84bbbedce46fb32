"""Timestamp utilities.

All persisted timestamps are UTC. The one local-time concept in the engine is
the daily submission window, which starts at midnight in a configurable zone.
"""

from datetime import datetime, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

STORAGE_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Example:
        >>> utc_now().tzinfo == timezone.utc
        True
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Return dt as an aware UTC datetime; naive values are taken as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def resolve_timezone(name: Optional[str]) -> Optional[tzinfo]:
    """Look up an IANA timezone name.

    Args:
        name: e.g. "Europe/Berlin"; None means the host's local zone

    Returns:
        tzinfo, or None for the host's local zone

    Raises:
        ValueError: If the name is unknown
    """
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: {name}") from e


def local_day_start(now: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Return the start of the calendar day containing ``now``, in UTC.

    The day boundary is midnight in ``tz`` (host local time when None), not a
    rolling 24 hour window.

    Example:
        >>> from datetime import timedelta
        >>> berlin = ZoneInfo("Europe/Berlin")
        >>> now = datetime(2025, 11, 4, 12, 0, tzinfo=timezone.utc)
        >>> local_day_start(now, berlin)
        datetime.datetime(2025, 11, 3, 23, 0, tzinfo=datetime.timezone.utc)
    """
    now = ensure_utc(now)
    local_now = now.astimezone(tz) if tz is not None else now.astimezone()
    midnight = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight.astimezone(timezone.utc)


def format_timestamp(dt: Optional[datetime]) -> Optional[str]:
    """Format a datetime in the fixed-width storage format.

    Fixed width keeps lexical order equal to chronological order, which the
    repositories rely on for range queries.

    Example:
        >>> format_timestamp(datetime(2025, 11, 4, 12, 0, tzinfo=timezone.utc))
        '2025-11-04T12:00:00.000000Z'
    """
    dt = ensure_utc(dt)
    if dt is None:
        return None
    return dt.strftime(STORAGE_FORMAT)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored timestamp (with or without microseconds) back to UTC."""
    if not value:
        return None
    cleaned = value.rstrip("Z")
    try:
        dt = datetime.strptime(cleaned, "%Y-%m-%dT%H:%M:%S.%f")
    except ValueError:
        dt = datetime.strptime(cleaned, "%Y-%m-%dT%H:%M:%S")
    return dt.replace(tzinfo=timezone.utc)
