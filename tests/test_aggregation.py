"""Tests for hourly production, carried-forward targets and shift totals."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from factories import Log, interval, shift_start
from machine_state.aggregation import (
    ShiftTotals,
    health_score,
    hourly_production,
    hourly_targets,
    percent_of,
    round_half_up,
    shift_totals,
)

UTC = timezone.utc
NEW_YORK = ZoneInfo("America/New_York")


def at(hour, day=7):
    """Hour key for 2026-01-<day> at <hour>:00 UTC."""
    return datetime(2026, 1, day, hour, tzinfo=UTC)


class TestSingleShift:
    """One declaration followed by one interval sample."""

    def test_targets(self, sm73_logs):
        assert hourly_targets(sm73_logs, UTC) == {at(8): 1200.0}

    def test_production(self, sm73_logs):
        assert hourly_production(sm73_logs, UTC) == {at(8): 150}

    def test_totals(self, sm73_logs):
        totals = shift_totals(sm73_logs, UTC)
        assert totals == ShiftTotals(produced=150, predicted=1200.0, percent=12.5)
        assert totals.label == "150/1200"
        assert totals.to_dict()["label"] == "150/1200"

    def test_health(self, sm73_logs):
        assert health_score(sm73_logs) == 50.0


class TestCarryForward:
    def test_target_carries_until_redeclared(self):
        logs = [
            shift_start("2026-01-07T08:00:00", "1,000"),
            interval("2026-01-07T08:30:00", count=100),
            interval("2026-01-07T09:30:00", count=200),
            shift_start("2026-01-07T10:00:00", "500"),
            interval("2026-01-07T10:15:00", count=50),
        ]
        assert hourly_targets(logs, UTC) == {at(8): 1000.0, at(9): 1000.0, at(10): 500.0}
        assert hourly_production(logs, UTC) == {at(8): 100, at(9): 200, at(10): 50}
        assert shift_totals(logs, UTC) == ShiftTotals(350, 2500.0, 14.0)

    def test_quiet_hours_inside_span_keep_target(self):
        logs = [
            shift_start("2026-01-07T06:00:00", "100"),
            interval("2026-01-07T09:10:00", count=10),
        ]
        assert hourly_targets(logs, UTC) == {at(6): 100.0, at(7): 100.0, at(8): 100.0, at(9): 100.0}

    def test_later_declaration_in_same_hour_supersedes(self):
        logs = [
            shift_start("2026-01-07T08:00:00", "1,000"),
            shift_start("2026-01-07T08:20:00", "1,500"),
            interval("2026-01-07T08:40:00", count=10),
        ]
        assert hourly_targets(logs, UTC) == {at(8): 1500.0}

    def test_hours_before_first_declaration(self):
        logs = [
            interval("2026-01-07T06:10:00", count=30),
            Log(event="start button", created_at="2026-01-07T07:00:00"),
            shift_start("2026-01-07T08:00:00", "600"),
            interval("2026-01-07T08:30:00", count=40),
        ]
        # Hour 6 produced parts so it takes the first declared rate; hour 7 did not.
        assert hourly_targets(logs, UTC) == {at(6): 600.0, at(7): 0.0, at(8): 600.0}

    def test_no_declaration_predicts_nothing(self):
        logs = [interval("2026-01-07T08:30:00", count=40)]
        assert hourly_targets(logs, UTC) == {at(8): 0.0}
        assert shift_totals(logs, UTC) == ShiftTotals(40, 0.0, 0.0)

    def test_input_order_does_not_matter(self, sm73_logs):
        assert hourly_targets(list(reversed(sm73_logs)), UTC) == {at(8): 1200.0}

    def test_no_logs(self):
        assert hourly_targets([], UTC) == {}
        assert shift_totals([], UTC) == ShiftTotals(0, 0.0, 0.0)


class TestSpans:
    def test_span_crossing_midnight(self):
        logs = [
            shift_start("2026-01-07T23:30:00", "1,200"),
            interval("2026-01-08T00:15:00", count=10, rate=100),
        ]
        assert hourly_targets(logs, UTC) == {at(23): 1200.0, at(0, day=8): 1200.0}
        assert hourly_production(logs, UTC) == {at(0, day=8): 10}
        assert shift_totals(logs, UTC) == ShiftTotals(10, 2400.0, 0.4)

    def test_utc_reports_use_dashboard_hours(self):
        logs = [
            shift_start("2026-01-07T13:00:00Z", "1,200"),
            interval("2026-01-07T13:15:00Z", count=150, rate=900),
        ]
        # 13:00Z is 08:00 in New York; the key is the same instant either way.
        key = datetime(2026, 1, 7, 8, tzinfo=NEW_YORK)
        assert hourly_targets(logs, NEW_YORK) == {key: 1200.0}
        assert hourly_production(logs, NEW_YORK) == {key: 150}

    def test_offset_and_epoch_reports_agree(self):
        iso = [
            shift_start("2026-01-07T15:00:00+02:00", "600"),
            interval("2026-01-07T16:30:00+02:00", count=40),
        ]
        epoch = [
            shift_start(1767790800, "600"),
            interval(1767796200, count=40),
        ]
        assert hourly_targets(iso, NEW_YORK) == hourly_targets(epoch, NEW_YORK)
        assert hourly_production(iso, NEW_YORK) == hourly_production(epoch, NEW_YORK)

    def test_fall_back_hour_is_counted_twice(self):
        logs = [
            shift_start("2026-11-01T05:00:00Z", "100"),
            interval("2026-11-01T06:30:00Z", count=10),
        ]
        # 01:00 EDT then 01:00 EST: two distinct hours on the wall clock.
        targets = hourly_targets(logs, NEW_YORK)
        assert list(targets) == [
            datetime(2026, 11, 1, 5, tzinfo=UTC),
            datetime(2026, 11, 1, 6, tzinfo=UTC),
        ]
        assert [key.astimezone(NEW_YORK).hour for key in targets] == [1, 1]


class TestSkipsUnparseableLogs:
    def test_bad_timestamp_is_left_out(self, sm73_logs):
        logs = sm73_logs + [interval("not a time", count=999)]
        assert hourly_production(logs, UTC) == {at(8): 150}
        assert hourly_targets(logs, UTC) == {at(8): 1200.0}

    def test_only_interval_logs_produce(self):
        logs = [
            Log(event="start button", created_at="2026-01-07T08:00:00", interval_count=70),
            interval("2026-01-07T08:05:00", count=5),
        ]
        assert hourly_production(logs, UTC) == {at(8): 5}


class TestHealthScore:
    def test_empty(self):
        assert health_score([]) == 0.0

    def test_one_in_three(self):
        logs = [
            interval("2026-01-07T08:00:00"),
            Log(event="off", created_at="2026-01-07T08:01:00"),
            Log(event="start button", created_at="2026-01-07T08:02:00"),
        ]
        assert health_score(logs) == 33.3

    def test_all_good(self):
        logs = [interval("2026-01-07T08:00:00"), interval("2026-01-07T08:01:00")]
        assert health_score(logs) == 100.0


class TestRounding:
    @pytest.mark.parametrize(
        "value,expected",
        [(2.5, 3.0), (3.5, 4.0), (2.4, 2.0), (1199.5, 1200.0)],
    )
    def test_round_half_up(self, value, expected):
        assert round_half_up(value) == expected

    def test_percent_half_up(self):
        assert percent_of(1, 16) == 6.3
        assert percent_of(1, 8) == 12.5

    def test_percent_of_zero_whole(self):
        assert percent_of(5, 0) == 0.0

    def test_label_rounds_prediction(self):
        assert ShiftTotals(1, 2.5, 40.0).label == "1/3"
