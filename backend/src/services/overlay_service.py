"""
Unavailability overlay for calendar rendering.

For each day of a date range this emits the intervals a calendar should grey
out: time outside the weekly window, exclusions, bookings, and the elapsed
part of the current day. It is the inverse of the slot resolver and shares
its interval resolution through TimeWindowService.
"""

import logging
from datetime import datetime, date as date_type, timedelta
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from core.constants import MAX_OVERLAY_RANGE_DAYS
from core.exceptions import InvalidConfiguration
from models import Booking, Exclusion
from services.availability_service import AvailabilityService
from services.time_window_service import TimeWindowService, WeeklySchedule
from shared_types.availability import Interval
from utils.datetime_utils import start_of_day, utc_now

logger = logging.getLogger(__name__)


class OverlayService:
    """Read-only computation of unavailable intervals."""

    @staticmethod
    def validate_range(start_date: date_type, end_date: date_type) -> None:
        """
        Raises:
            InvalidConfiguration: If the range is reversed or too long
        """
        if end_date < start_date:
            raise InvalidConfiguration(f"End date {end_date} is before start date {start_date}")
        days = (end_date - start_date).days + 1
        if days > MAX_OVERLAY_RANGE_DAYS:
            raise InvalidConfiguration(
                f"Date range of {days} days exceeds the maximum of {MAX_OVERLAY_RANGE_DAYS}"
            )

    @staticmethod
    def compute_unavailable_intervals(
        start_date: date_type,
        end_date: date_type,
        weekly_availability: WeeklySchedule,
        exclusions: Iterable[Exclusion],
        bookings: Iterable[Booking],
        now: Optional[datetime] = None
    ) -> List[Interval]:
        """
        Compute unavailable intervals for each day in [start_date, end_date].

        Output intervals are half-open, clipped to their day and not merged;
        overlapping entries are expected.

        Args:
            start_date: First UTC date (inclusive)
            end_date: Last UTC date (inclusive)
            weekly_availability: The seven weekly records
            exclusions: Exclusions that may touch the range; malformed ones are skipped
            bookings: Bookings that may touch the range
            now: Current instant (defaults to the clock)
        """
        OverlayService.validate_range(start_date, end_date)
        if now is None:
            now = utc_now()

        exclusions = list(exclusions)
        booking_intervals = [Interval(b.start_at, b.end_at) for b in bookings]
        today = now.date()

        unavailable: List[Interval] = []
        day = start_date
        while day <= end_date:
            bounds = TimeWindowService.day_bounds(day)

            open_spans = TimeWindowService.open_spans_for_day(day, weekly_availability)
            unavailable.extend(TimeWindowService.subtract_intervals(bounds, open_spans))

            unavailable.extend(TimeWindowService.exclusion_intervals_within(exclusions, bounds))

            for interval in booking_intervals:
                clipped = interval.clip(bounds)
                if clipped is not None:
                    unavailable.append(clipped)

            if day == today and now > bounds.start:
                unavailable.append(Interval(bounds.start, min(now, bounds.end)))

            day += timedelta(days=1)

        return unavailable

    @staticmethod
    def get_unavailable_intervals(
        db: Session,
        start_date: date_type,
        end_date: date_type,
        now: Optional[datetime] = None
    ) -> List[Interval]:
        """Load the records touching the range and compute its overlay."""
        OverlayService.validate_range(start_date, end_date)
        bounds = Interval(start_of_day(start_date), start_of_day(end_date + timedelta(days=1)))
        data = AvailabilityService.fetch_schedule_data(db, bounds)

        intervals = OverlayService.compute_unavailable_intervals(
            start_date,
            end_date,
            data['weekly'],
            data['exclusions'],
            data['bookings'],
            now=now,
        )
        logger.debug(f"Computed {len(intervals)} unavailable intervals for {start_date} - {end_date}")
        return intervals
