"""
Unit tests for slot computation.

The resolver is pure, so these tests feed it unsaved model instances.
"""

import pytest
from datetime import time, timedelta

from core.exceptions import InvalidConfiguration
from models import Booking, BookingType, Exclusion
from services.availability_service import AvailabilityService
from shared_types.availability import Interval
from tests.utils import MONDAY, SUNDAY, TUESDAY, at, weekly_schedule

BEFORE = at(SUNDAY, 0)


def _type(duration: int = 60) -> BookingType:
    return BookingType(id=1, name="Consultation", duration_minutes=duration)


def _booking(start, end, status="confirmed") -> Booking:
    return Booking(title="Existing", start_at=start, end_at=end, full_name="X", email="x@example.com", status=status)


def _slots(schedule, bookings=(), exclusions=(), duration=60, step=30, now=BEFORE, day=MONDAY):
    return AvailabilityService.compute_available_slots(
        day, _type(duration), bookings, exclusions, schedule, granularity_minutes=step, now=now
    )


class TestComputeAvailableSlots:

    def test_plain_window(self):
        slots = _slots(weekly_schedule())
        # 09:00 through 16:00 inclusive in 30 minute steps
        assert slots == list(range(9 * 60, 16 * 60 + 1, 30))

    def test_slot_must_fit_before_window_end(self):
        slots = _slots(weekly_schedule(), duration=90)
        assert slots[-1] == 15 * 60 + 30

    def test_cross_midnight_window(self):
        """Monday 22:00-02:00 yields slots past 1440 minutes."""
        schedule = weekly_schedule(overrides={0: (time(22, 0), time(2, 0))})
        slots = _slots(schedule)
        assert slots == [1320, 1350, 1380, 1410, 1440, 1470, 1500]

    def test_disabled_day_is_empty(self):
        schedule = weekly_schedule(enabled_days=(0, 1, 2, 3, 4, 5))
        bookings = [_booking(at(SUNDAY, 12), at(SUNDAY, 13))]
        exclusions = [Exclusion(id=1, start_date=SUNDAY, start_time=time(10, 0), end_time=time(11, 0))]
        assert _slots(schedule, bookings=bookings, exclusions=exclusions, day=SUNDAY) == []

    def test_booking_blocks_overlapping_candidates(self):
        bookings = [_booking(at(MONDAY, 10), at(MONDAY, 11))]
        slots = _slots(weekly_schedule(), bookings=bookings)
        assert 9 * 60 in slots  # 09:00-10:00 only touches the booking
        assert 9 * 60 + 30 not in slots
        assert 10 * 60 not in slots
        assert 10 * 60 + 30 not in slots
        assert 11 * 60 in slots

    def test_pending_booking_also_blocks(self):
        bookings = [_booking(at(MONDAY, 9), at(MONDAY, 10), status="pending")]
        slots = _slots(weekly_schedule(), bookings=bookings)
        assert 9 * 60 not in slots

    def test_exclusion_ending_at_eleven(self):
        """An exclusion from midnight to 11:00 leaves 11:00 as the first slot."""
        exclusions = [Exclusion(id=1, start_date=MONDAY, end_time=time(11, 0))]
        slots = _slots(weekly_schedule(), exclusions=exclusions)
        assert slots[0] == 11 * 60
        assert len(slots) == 11

    def test_all_day_exclusion_empties_day(self):
        exclusions = [Exclusion(id=1, start_date=MONDAY)]
        assert _slots(weekly_schedule(), exclusions=exclusions) == []

    def test_malformed_exclusion_is_ignored(self):
        exclusions = [Exclusion(id=1, start_date=TUESDAY, end_date=MONDAY)]
        assert _slots(weekly_schedule(), exclusions=exclusions) == _slots(weekly_schedule())

    def test_past_candidates_dropped(self):
        slots = _slots(weekly_schedule(), now=at(MONDAY, 12, 10))
        assert slots[0] == 12 * 60 + 30

    def test_candidate_at_now_is_kept(self):
        slots = _slots(weekly_schedule(), now=at(MONDAY, 12))
        assert slots[0] == 12 * 60

    def test_idempotent(self):
        schedule = weekly_schedule()
        bookings = [_booking(at(MONDAY, 13), at(MONDAY, 14))]
        assert _slots(schedule, bookings=bookings) == _slots(schedule, bookings=bookings)

    def test_every_slot_fits_and_is_free(self):
        schedule = weekly_schedule(overrides={0: (time(22, 0), time(2, 0))})
        busy = Interval(at(MONDAY, 23), at(TUESDAY, 0))
        bookings = [_booking(busy.start, busy.end)]
        window = Interval(at(MONDAY, 22), at(TUESDAY, 2))
        for minutes in _slots(schedule, bookings=bookings, duration=45, step=15):
            start = at(MONDAY, 0) + timedelta(minutes=minutes)
            slot = Interval(start, start + timedelta(minutes=45))
            assert window.contains(slot)
            assert not slot.overlaps(busy)

    @pytest.mark.parametrize("duration", [0, -30])
    def test_invalid_duration(self, duration):
        with pytest.raises(InvalidConfiguration):
            _slots(weekly_schedule(), duration=duration)

    def test_invalid_step(self):
        with pytest.raises(InvalidConfiguration):
            _slots(weekly_schedule(), step=0)


class TestIsWithinWeeklyWindow:

    def test_inside_previous_day_spill(self):
        schedule = weekly_schedule(overrides={0: (time(22, 0), time(2, 0))})
        interval = Interval(at(TUESDAY, 0, 30), at(TUESDAY, 1, 30))
        assert AvailabilityService.is_within_weekly_window(interval, schedule)

    def test_straddling_window_end(self):
        interval = Interval(at(MONDAY, 16, 30), at(MONDAY, 17, 30))
        assert not AvailabilityService.is_within_weekly_window(interval, weekly_schedule())
