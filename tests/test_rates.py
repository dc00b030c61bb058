"""Tests for target rate parsing and rate classification."""

import pytest

from machine_state.rates import Status, classify_rate, parse_target_rate, static_status


class TestParseTargetRate:
    """Declared parts-per-hour in shift comments."""

    @pytest.mark.parametrize(
        "comments,expected",
        [
            ("Standard Parts Rate: 1,200 parts", 1200.0),
            ("standard parts rate:900 parts", 900.0),
            ("Shift A. Standard Parts Rate: 12.5 parts per hour", 12.5),
            ("STANDARD PARTS RATE: 1,000,000 PARTS", 1000000.0),
        ],
    )
    def test_declared_rate(self, comments, expected):
        assert parse_target_rate(comments) == expected

    @pytest.mark.parametrize("comments", [None, "", "operator swap", "Standard Parts Rate: parts"])
    def test_no_declaration(self, comments):
        assert parse_target_rate(comments) is None


class TestClassifyRate:
    def test_good_at_boundary(self):
        assert classify_rate(840, 1200) is Status.GOOD

    def test_warning_below_good_boundary(self):
        assert classify_rate(839, 1200) is Status.WARNING

    def test_warning_at_boundary(self):
        assert classify_rate(480, 1200) is Status.WARNING

    def test_bad_below_warning_boundary(self):
        assert classify_rate(479, 1200) is Status.BAD

    def test_above_target_is_good(self):
        assert classify_rate(2000, 1200) is Status.GOOD

    def test_missing_rate_counts_as_zero(self):
        assert classify_rate(None, 1200) is Status.BAD

    @pytest.mark.parametrize("target", [None, 0, -5])
    def test_falls_back_to_static_status(self, target):
        assert classify_rate(100, target) is Status.GOOD
        assert classify_rate(100, target, "start button") is Status.BAD


class TestStaticStatus:
    @pytest.mark.parametrize(
        "event,expected",
        [
            ("start button", Status.BAD),
            ("auto interval log", Status.GOOD),
            ("  Auto Interval Log ", Status.GOOD),
            ("off", Status.NONE),
            ("start shift", Status.ON),
            ("maintenance", Status.ON),
            ("", Status.NONE),
            (None, Status.NONE),
        ],
    )
    def test_event_kinds(self, event, expected):
        assert static_status(event) is expected

    def test_status_values_are_wire_strings(self):
        assert Status.GOOD.value == "good"
        assert Status.NONE == "none"
