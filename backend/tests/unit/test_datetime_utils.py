"""
Tests for datetime utilities.
"""

from datetime import date, datetime, time, timedelta, timezone

import pytest

from utils.datetime_utils import (
    UTC, combine_utc, ensure_utc, format_minutes, parse_date_string,
    parse_time_string, to_caller_local, validate_utc_offset,
)


class TestEnsureUtc:

    def test_naive_is_treated_as_utc(self):
        assert ensure_utc(datetime(2030, 1, 7, 9, 0)) == datetime(2030, 1, 7, 9, 0, tzinfo=UTC)

    def test_aware_is_converted(self):
        local = datetime(2030, 1, 7, 9, 0, tzinfo=timezone(timedelta(hours=8)))
        assert ensure_utc(local) == datetime(2030, 1, 7, 1, 0, tzinfo=UTC)

    def test_none(self):
        assert ensure_utc(None) is None


def test_combine_utc():
    assert combine_utc(date(2030, 1, 7), time(23, 30)) == datetime(2030, 1, 7, 23, 30, tzinfo=UTC)


@pytest.mark.parametrize("minutes,expected", [(0, "00:00"), (570, "09:30"), (1440, "00:00"), (1500, "01:00")])
def test_format_minutes_wraps(minutes, expected):
    assert format_minutes(minutes) == expected


def test_to_caller_local():
    local = to_caller_local(datetime(2030, 1, 7, 3, 0, tzinfo=UTC), -300)
    assert (local.day, local.hour) == (6, 22)


def test_validate_utc_offset():
    assert validate_utc_offset(840) == 840
    with pytest.raises(ValueError):
        validate_utc_offset(-841)


class TestParsing:

    @pytest.mark.parametrize("value", ["2030-01-07", "2030/1/7", " 2030-1-07 "])
    def test_date_formats(self, value):
        assert parse_date_string(value) == date(2030, 1, 7)

    @pytest.mark.parametrize("value", ["", "20300107", "2030-02-30", "2030-01"])
    def test_bad_dates(self, value):
        with pytest.raises(ValueError):
            parse_date_string(value)

    def test_time(self):
        assert parse_time_string("09:05") == time(9, 5)

    @pytest.mark.parametrize("value", ["24:00", "9am", "12:60"])
    def test_bad_times(self, value):
        with pytest.raises(ValueError):
            parse_time_string(value)
