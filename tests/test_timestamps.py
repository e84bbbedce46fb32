"""Unit tests for timestamp utilities."""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from autoapply.utils.timestamps import (
    ensure_utc,
    format_timestamp,
    local_day_start,
    parse_timestamp,
    resolve_timezone,
    utc_now,
)


class TestUtcNow:
    """Tests for utc_now function."""

    def test_utc_now_returns_aware_utc(self):
        now = utc_now()
        assert now.tzinfo == timezone.utc

    def test_utc_now_is_recent(self):
        before = datetime.now(timezone.utc)
        now = utc_now()
        after = datetime.now(timezone.utc)

        assert before <= now <= after


class TestEnsureUtc:
    """Tests for ensure_utc function."""

    def test_none(self):
        assert ensure_utc(None) is None

    def test_naive_is_taken_as_utc(self):
        result = ensure_utc(datetime(2025, 11, 4, 12, 0, 0))

        assert result.tzinfo == timezone.utc
        assert result.hour == 12

    def test_other_zone_is_converted(self):
        est = timezone(timedelta(hours=-5))
        result = ensure_utc(datetime(2025, 11, 4, 12, 0, 0, tzinfo=est))

        assert result.tzinfo == timezone.utc
        assert result.hour == 17


class TestFormatAndParse:
    """Tests for the fixed-width storage format."""

    def test_format_timestamp(self):
        dt = datetime(2025, 11, 4, 12, 30, 45, tzinfo=timezone.utc)
        assert format_timestamp(dt) == "2025-11-04T12:30:45.000000Z"

    def test_format_converts_to_utc(self):
        est = timezone(timedelta(hours=-5))
        dt = datetime(2025, 11, 4, 12, 0, 0, tzinfo=est)
        assert format_timestamp(dt) == "2025-11-04T17:00:00.000000Z"

    def test_format_none(self):
        assert format_timestamp(None) is None

    def test_lexical_order_matches_chronological_order(self):
        earlier = datetime(2025, 11, 4, 9, 5, 3, tzinfo=timezone.utc)
        later = datetime(2025, 11, 4, 10, 0, 0, 1, tzinfo=timezone.utc)

        assert format_timestamp(earlier) < format_timestamp(later)

    def test_parse_with_microseconds(self):
        result = parse_timestamp("2025-11-04T12:30:45.123456Z")
        assert result == datetime(2025, 11, 4, 12, 30, 45, 123456, tzinfo=timezone.utc)

    def test_parse_without_microseconds(self):
        result = parse_timestamp("2025-11-04T12:30:45Z")
        assert result == datetime(2025, 11, 4, 12, 30, 45, tzinfo=timezone.utc)

    def test_parse_empty(self):
        assert parse_timestamp(None) is None
        assert parse_timestamp("") is None

    def test_parse_invalid_raises(self):
        with pytest.raises(ValueError):
            parse_timestamp("2025/11/04")


class TestResolveTimezone:
    """Tests for resolve_timezone function."""

    def test_known_zone(self):
        assert resolve_timezone("Europe/Berlin") == ZoneInfo("Europe/Berlin")

    def test_none_means_host_zone(self):
        assert resolve_timezone(None) is None
        assert resolve_timezone("") is None

    def test_unknown_zone(self):
        with pytest.raises(ValueError, match="Unknown timezone"):
            resolve_timezone("Mars/Olympus_Mons")


class TestLocalDayStart:
    """Tests for local_day_start function."""

    def test_utc_zone(self):
        now = datetime(2025, 11, 4, 15, 42, 10, tzinfo=timezone.utc)

        assert local_day_start(now, ZoneInfo("UTC")) == datetime(
            2025, 11, 4, 0, 0, tzinfo=timezone.utc
        )

    def test_zone_ahead_of_utc(self):
        now = datetime(2025, 11, 4, 12, 0, tzinfo=timezone.utc)

        # Berlin is UTC+1 in November
        assert local_day_start(now, ZoneInfo("Europe/Berlin")) == datetime(
            2025, 11, 3, 23, 0, tzinfo=timezone.utc
        )

    def test_zone_behind_utc_previous_local_day(self):
        now = datetime(2025, 11, 4, 3, 0, tzinfo=timezone.utc)

        # 22:00 on Nov 3 in New York (UTC-5)
        assert local_day_start(now, ZoneInfo("America/New_York")) == datetime(
            2025, 11, 3, 5, 0, tzinfo=timezone.utc
        )

    def test_result_is_utc_and_not_after_now(self):
        now = utc_now()
        start = local_day_start(now)

        assert start.tzinfo == timezone.utc
        assert start <= now
        assert now - start < timedelta(hours=25)
