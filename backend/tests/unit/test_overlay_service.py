"""
Unit tests for the unavailability overlay.
"""

import pytest
from datetime import time, timedelta

from core.exceptions import InvalidConfiguration
from models import Booking, BookingType, Exclusion
from services.availability_service import AvailabilityService
from services.overlay_service import OverlayService
from services.time_window_service import TimeWindowService
from shared_types.availability import Interval
from tests.utils import MONDAY, SUNDAY, TUESDAY, at, weekly_schedule

BEFORE = at(SUNDAY, 0) - timedelta(days=7)


def _overlay(schedule, start=MONDAY, end=MONDAY, exclusions=(), bookings=(), now=BEFORE):
    return OverlayService.compute_unavailable_intervals(start, end, schedule, exclusions, bookings, now=now)


class TestComputeUnavailableIntervals:

    def test_outside_window(self):
        assert _overlay(weekly_schedule()) == [
            Interval(at(MONDAY, 0), at(MONDAY, 9)),
            Interval(at(MONDAY, 17), at(TUESDAY, 0)),
        ]

    def test_disabled_day_is_fully_unavailable(self):
        schedule = weekly_schedule(enabled_days=(1, 2, 3, 4, 5, 6))
        assert _overlay(schedule) == [Interval(at(MONDAY, 0), at(TUESDAY, 0))]

    def test_previous_day_spill_is_open(self):
        schedule = weekly_schedule(overrides={6: (time(22, 0), time(2, 0))})
        assert _overlay(schedule) == [
            Interval(at(MONDAY, 2), at(MONDAY, 9)),
            Interval(at(MONDAY, 17), at(TUESDAY, 0)),
        ]

    def test_exclusions_and_bookings_are_added(self):
        exclusions = [Exclusion(id=1, start_date=MONDAY, start_time=time(12, 0), end_time=time(13, 0))]
        bookings = [Booking(start_at=at(MONDAY, 10), end_at=at(MONDAY, 11))]
        intervals = _overlay(weekly_schedule(), exclusions=exclusions, bookings=bookings)
        assert Interval(at(MONDAY, 12), at(MONDAY, 13)) in intervals
        assert Interval(at(MONDAY, 10), at(MONDAY, 11)) in intervals

    def test_multi_day_items_are_clipped_per_day(self):
        exclusions = [Exclusion(id=1, start_date=MONDAY, end_date=TUESDAY, start_time=time(20, 0), end_time=time(4, 0))]
        intervals = _overlay(weekly_schedule(), end=TUESDAY, exclusions=exclusions)
        assert Interval(at(MONDAY, 20), at(TUESDAY, 0)) in intervals
        assert Interval(at(TUESDAY, 0), at(TUESDAY, 4)) in intervals
        for interval in intervals:
            assert interval.start.date() == (interval.end - timedelta(microseconds=1)).date()

    def test_elapsed_part_of_today(self):
        intervals = _overlay(weekly_schedule(), now=at(MONDAY, 12, 15))
        assert Interval(at(MONDAY, 0), at(MONDAY, 12, 15)) in intervals

    def test_overlay_agrees_with_slots(self):
        """No bookable slot intersects an unavailable interval."""
        schedule = weekly_schedule(overrides={0: (time(22, 0), time(2, 0))})
        exclusions = [Exclusion(id=1, start_date=TUESDAY, start_time=time(0, 30), end_time=time(1, 0))]
        bookings = [Booking(start_at=at(MONDAY, 22, 30), end_at=at(MONDAY, 23))]
        intervals = _overlay(schedule, end=TUESDAY, exclusions=exclusions, bookings=bookings)

        minutes = AvailabilityService.compute_available_slots(
            MONDAY, BookingType(duration_minutes=30), bookings, exclusions, schedule, 30, now=BEFORE
        )
        assert minutes
        for offset in minutes:
            start = at(MONDAY, 0) + timedelta(minutes=offset)
            slot = Interval(start, start + timedelta(minutes=30))
            assert not any(slot.overlaps(i) for i in intervals)

    def test_reversed_range(self):
        with pytest.raises(InvalidConfiguration):
            _overlay(weekly_schedule(), start=TUESDAY, end=MONDAY)

    def test_range_too_long(self):
        with pytest.raises(InvalidConfiguration):
            OverlayService.validate_range(MONDAY, MONDAY + timedelta(days=62))

    def test_merge_is_not_applied(self):
        bookings = [Booking(start_at=at(MONDAY, 8), end_at=at(MONDAY, 10))]
        intervals = _overlay(weekly_schedule(), bookings=bookings)
        assert len(intervals) == 3
        assert TimeWindowService.merge_intervals(intervals)[0] == Interval(at(MONDAY, 0), at(MONDAY, 10))
