"""Tests for HH:MM parsing and half-open interval overlap."""

import pytest

from app.services.errors import InvalidIntervalError, ValidationError
from app.services.time_intervals import (
    duration_minutes,
    from_minutes,
    overlaps,
    times_overlap,
    to_minutes,
    validate_interval,
)


class TestToMinutes:
    @pytest.mark.parametrize(
        "value, expected",
        [("00:00", 0), ("09:30", 570), ("23:59", 1439), ("24:00", 1440)],
    )
    def test_valid_times(self, value, expected):
        assert to_minutes(value) == expected

    @pytest.mark.parametrize(
        "value",
        ["9:30", "09:60", "25:00", "24:30", "ab:cd", "", "0930", "10:00\n", " 10:00"],
    )
    def test_invalid_times_rejected(self, value):
        with pytest.raises(ValidationError):
            to_minutes(value)

    def test_from_minutes_pads(self):
        assert from_minutes(545) == "09:05"
        assert from_minutes(1440) == "24:00"

    def test_from_minutes_out_of_range(self):
        with pytest.raises(ValidationError):
            from_minutes(1441)


class TestOverlap:
    def test_partial_overlap(self):
        assert times_overlap("13:30", "14:30", "14:00", "15:00")

    def test_containment(self):
        assert times_overlap("14:00", "15:00", "14:15", "14:45")

    def test_back_to_back_does_not_overlap(self):
        assert not times_overlap("15:00", "16:00", "14:00", "15:00")
        assert not times_overlap("14:00", "15:00", "15:00", "16:00")

    def test_disjoint(self):
        assert not times_overlap("08:00", "09:00", "10:00", "11:00")

    @pytest.mark.parametrize(
        "a, b",
        [
            ((600, 660), (630, 690)),
            ((600, 660), (660, 720)),
            ((600, 720), (610, 620)),
            ((0, 30), (900, 960)),
        ],
    )
    def test_symmetric(self, a, b):
        assert overlaps(*a, *b) == overlaps(*b, *a)


class TestValidateInterval:
    def test_returns_minutes(self):
        assert validate_interval("10:00", "11:30") == (600, 690)
        assert duration_minutes("10:00", "11:30") == 90

    @pytest.mark.parametrize("start, end", [("11:00", "11:00"), ("12:00", "11:00")])
    def test_end_must_follow_start(self, start, end):
        with pytest.raises(InvalidIntervalError):
            validate_interval(start, end)

    def test_invalid_interval_is_a_validation_error(self):
        assert issubclass(InvalidIntervalError, ValidationError)
