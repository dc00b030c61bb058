"""Tests for timestamp resolution.

Verifies that:
1. ISO strings resolve with either separator and with a Z suffix
2. Epoch numbers and digit strings resolve as seconds or milliseconds
3. Naive values are read in the dashboard zone, aware ones converted into it
4. Garbage raises TimestampParseError (a ValueError)
"""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from core.exceptions import TimestampParseError
from machine_state.timestamps import (
    day_origin,
    day_seconds,
    elapsed_seconds,
    parse_timestamp,
    to_epoch_ms,
    to_store_text,
)

UTC = timezone.utc
PLUS_TWO = timezone(timedelta(hours=2))
NEW_YORK = ZoneInfo("America/New_York")

# 2026-01-07T08:00:00Z
EPOCH_SECONDS = 1767772800
EXPECTED = datetime(2026, 1, 7, 8, 0, tzinfo=UTC)


class TestIsoStrings:
    """ISO-8601 forms reported by agents."""

    @pytest.mark.parametrize(
        "value",
        [
            "2026-01-07T08:00:00",
            "2026-01-07 08:00:00",
            "2026-01-07T08:00:00Z",
            "2026-01-07T08:00:00+00:00",
            "  2026-01-07T08:00:00  ",
        ],
    )
    def test_resolves_to_same_instant(self, value):
        assert parse_timestamp(value, UTC) == EXPECTED

    def test_offset_is_respected(self):
        dt = parse_timestamp("2026-01-07T10:00:00+02:00", UTC)
        assert dt == EXPECTED
        assert dt.hour == 8

    @pytest.mark.parametrize("value", ["2026-01-07T13:00:00Z", "2026-01-07T15:00:00+02:00", 1767790800])
    def test_aware_values_land_in_dashboard_zone(self, value):
        dt = parse_timestamp(value, NEW_YORK)
        assert (dt.date(), dt.hour) == (date(2026, 1, 7), 8)
        assert dt.utcoffset() == timedelta(hours=-5)

    def test_utc_evening_is_previous_local_day(self):
        dt = parse_timestamp("2026-01-08T02:00:00Z", NEW_YORK)
        assert (dt.date(), dt.hour) == (date(2026, 1, 7), 21)

    def test_naive_value_uses_dashboard_zone(self):
        dt = parse_timestamp("2026-01-07 10:00:00", PLUS_TWO)
        assert dt.utcoffset() == timedelta(hours=2)
        assert dt == EXPECTED

    def test_result_is_always_aware(self):
        assert parse_timestamp("2026-01-07 08:00:00").tzinfo is not None


class TestEpochValues:
    """Unix seconds and milliseconds, as numbers or digit strings."""

    @pytest.mark.parametrize(
        "value",
        [
            EPOCH_SECONDS,
            float(EPOCH_SECONDS),
            EPOCH_SECONDS * 1000,
            str(EPOCH_SECONDS),
            str(EPOCH_SECONDS * 1000),
        ],
    )
    def test_epoch_forms(self, value):
        assert parse_timestamp(value, UTC) == EXPECTED

    def test_aware_datetime_is_converted(self):
        dt = parse_timestamp(EXPECTED, PLUS_TWO)
        assert dt == EXPECTED
        assert dt.hour == 10

    def test_naive_datetime_is_localized(self):
        dt = parse_timestamp(datetime(2026, 1, 7, 8, 0), UTC)
        assert dt == EXPECTED


class TestUnparseable:
    @pytest.mark.parametrize("value", [None, "", "   ", "garbage", "2026-13-45", True, [1, 2]])
    def test_raises(self, value):
        with pytest.raises(TimestampParseError):
            parse_timestamp(value, UTC)

    def test_error_is_a_value_error(self):
        with pytest.raises(ValueError):
            parse_timestamp("not a time")


class TestHelpers:
    def test_to_epoch_ms(self):
        assert to_epoch_ms("2026-01-07T08:00:00Z") == EPOCH_SECONDS * 1000.0

    def test_store_text_in_dashboard_zone(self):
        assert to_store_text("2026-01-07T08:00:00Z", UTC) == "2026-01-07 08:00:00"
        assert to_store_text("2026-01-07T08:00:00Z", PLUS_TWO) == "2026-01-07 10:00:00"
        assert to_store_text(EPOCH_SECONDS * 1000, UTC) == "2026-01-07 08:00:00"

    def test_day_origin_is_midnight(self):
        assert day_origin(date(2026, 1, 7), UTC) == datetime(2026, 1, 7, tzinfo=UTC)

    def test_elapsed_seconds_floors(self):
        origin = day_origin(date(2026, 1, 7), UTC)
        assert elapsed_seconds(origin, parse_timestamp("2026-01-07T08:00:00.900000", UTC)) == 28800
        assert elapsed_seconds(origin, parse_timestamp("2026-01-06T23:59:59", UTC)) == -1

    def test_elapsed_seconds_across_dst(self):
        origin = day_origin(date(2026, 3, 8), NEW_YORK)
        # Clocks jump from 02:00 to 03:00, so 04:00 local is three hours in.
        assert elapsed_seconds(origin, parse_timestamp("2026-03-08 04:00:00", NEW_YORK)) == 10800

    @pytest.mark.parametrize(
        "day,expected",
        [(date(2026, 1, 7), 86400), (date(2026, 3, 8), 82800), (date(2026, 11, 1), 90000)],
    )
    def test_day_seconds(self, day, expected):
        assert day_seconds(day, NEW_YORK) == expected
