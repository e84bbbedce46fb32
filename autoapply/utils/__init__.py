"""Utility functions for time handling."""

from .timestamps import (
    ensure_utc,
    format_timestamp,
    local_day_start,
    parse_timestamp,
    resolve_timezone,
    utc_now,
)

__all__ = [
    "utc_now",
    "ensure_utc",
    "resolve_timezone",
    "local_day_start",
    "format_timestamp",
    "parse_timestamp",
]
