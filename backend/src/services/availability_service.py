"""
Availability service for slot computation and weekly window management.

This module contains the availability resolver shared by the public slot
listing and the booking guard, plus the admin operations that maintain the
seven weekly availability records.
"""

import logging
from datetime import datetime, date as date_type, time, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from core.constants import (
    DEFAULT_SLOT_STEP_MINUTES, DEFAULT_WINDOW_END, DEFAULT_WINDOW_START,
)
from core.exceptions import InvalidConfiguration, NotFound
from models import Booking, BookingType, Exclusion, WeeklyAvailability
from services.time_window_service import TimeWindowService, WeeklySchedule
from shared_types.availability import Interval, SlotData
from utils.datetime_utils import (
    format_minutes, parse_time_string, start_of_day, to_caller_local, utc_now, validate_utc_offset,
)

logger = logging.getLogger(__name__)


class AvailabilityService:
    """
    Service class for availability operations.

    The pure resolver (`compute_available_slots`) takes already-loaded records
    so it can be exercised without a database; the DB-backed wrappers fetch
    exactly the records that can affect a day and delegate to it.
    """

    @staticmethod
    def _generate_candidate_starts(
        window: Interval,
        duration_minutes: int,
        step_size_minutes: int
    ) -> List[datetime]:
        """
        Generate candidate slot starts inside a resolved window.

        Starts at the window start exactly and advances by the step; a
        candidate is kept only while the whole slot fits in the window.
        """
        duration = timedelta(minutes=duration_minutes)
        step = timedelta(minutes=step_size_minutes)
        candidates: List[datetime] = []
        current = window.start
        while current + duration <= window.end:
            candidates.append(current)
            current += step
        return candidates

    @staticmethod
    def compute_available_slots(
        day: date_type,
        booking_type: BookingType,
        existing_bookings: Iterable[Booking],
        exclusions: Iterable[Exclusion],
        weekly_availability: WeeklySchedule,
        granularity_minutes: int = DEFAULT_SLOT_STEP_MINUTES,
        now: Optional[datetime] = None
    ) -> List[int]:
        """
        Compute every bookable slot start for a UTC calendar date.

        Steps:
        1. Resolve the day's weekly window; a disabled day has no slots
        2. Generate candidates at ``granularity_minutes`` steps from the window start
        3. Drop candidates overlapping any booking (whatever its status) or exclusion
        4. Drop candidates starting before ``now``

        Args:
            day: UTC calendar date
            booking_type: Type whose duration sizes each slot
            existing_bookings: Bookings that may touch the window
            exclusions: Exclusions that may touch the window; malformed ones are skipped
            weekly_availability: The seven weekly records
            granularity_minutes: Distance between candidate starts
            now: Current instant (defaults to the clock)

        Returns:
            Sorted minutes since midnight UTC of ``day``. Values of 1440 or
            more belong to a window that wrapped into the next day.

        Raises:
            InvalidConfiguration: Non-positive duration or step, or a missing weekday record
        """
        duration_minutes = booking_type.duration_minutes
        if duration_minutes is None or duration_minutes <= 0:
            raise InvalidConfiguration(f"Booking type duration must be positive, got {duration_minutes}")
        if granularity_minutes <= 0:
            raise InvalidConfiguration(f"Slot step must be positive, got {granularity_minutes}")

        window = TimeWindowService.resolve_weekly_window(day, weekly_availability)
        if window is None:
            return []

        if now is None:
            now = utc_now()

        busy: List[Interval] = []
        for booking in existing_bookings:
            clipped = Interval(booking.start_at, booking.end_at).clip(window)
            if clipped is not None:
                busy.append(clipped)
        busy.extend(TimeWindowService.exclusion_intervals_within(exclusions, window))
        busy = TimeWindowService.merge_intervals(busy)

        midnight = start_of_day(day)
        duration = timedelta(minutes=duration_minutes)
        available: List[int] = []
        for candidate_start in AvailabilityService._generate_candidate_starts(
            window, duration_minutes, granularity_minutes
        ):
            if candidate_start < now:
                continue
            slot = Interval(candidate_start, candidate_start + duration)
            if any(slot.overlaps(interval) for interval in busy):
                continue
            available.append(int((candidate_start - midnight).total_seconds() // 60))

        return sorted(available)

    @staticmethod
    def fetch_schedule_data(db: Session, bounds: Interval) -> Dict[str, Any]:
        """
        Fetch the records that can affect availability inside ``bounds``.

        Returns:
            {
                'weekly': Dict[int, WeeklyAvailability],
                'bookings': List[Booking],  # Overlapping bounds, any status
                'exclusions': List[Exclusion]  # Touching any date of bounds
            }
        """
        weekly = {
            record.day_of_week: record
            for record in db.query(WeeklyAvailability).all()
        }

        bookings = db.query(Booking).filter(
            Booking.start_at < bounds.end,
            Booking.end_at > bounds.start
        ).order_by(Booking.start_at).all()

        first_date = bounds.start.date()
        last_date = (bounds.end - timedelta(microseconds=1)).date()
        exclusions = db.query(Exclusion).filter(
            Exclusion.start_date <= last_date,
            or_(
                Exclusion.end_date >= first_date,
                and_(Exclusion.end_date.is_(None), Exclusion.start_date >= first_date)
            )
        ).all()

        return {
            'weekly': weekly,
            'bookings': bookings,
            'exclusions': exclusions,
        }

    @staticmethod
    def get_available_slots(
        db: Session,
        day: date_type,
        booking_type_id: int,
        utc_offset_minutes: int = 0,
        granularity_minutes: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> List[SlotData]:
        """
        Slot query surface: available slots for a date and booking type.

        Args:
            db: Database session
            day: UTC calendar date
            booking_type_id: Booking type to size the slots with
            utc_offset_minutes: Caller's offset east of UTC, used for display labels
            granularity_minutes: Candidate step (defaults to DEFAULT_SLOT_STEP_MINUTES)
            now: Current instant (defaults to the clock)

        Raises:
            NotFound: If the booking type does not exist or is deleted
            InvalidConfiguration: If the offset, step or stored configuration is malformed
        """
        try:
            validate_utc_offset(utc_offset_minutes)
        except ValueError as e:
            raise InvalidConfiguration(str(e))

        booking_type = db.query(BookingType).filter(
            BookingType.id == booking_type_id,
            BookingType.is_deleted == False  # noqa: E712
        ).first()
        if not booking_type:
            raise NotFound(f"Booking type {booking_type_id} not found")

        step = granularity_minutes or DEFAULT_SLOT_STEP_MINUTES
        # Wide enough for a window that wraps into the next day
        bounds = Interval(start_of_day(day), start_of_day(day + timedelta(days=2)))
        data = AvailabilityService.fetch_schedule_data(db, bounds)
        AvailabilityService._require_full_week(data['weekly'])

        minutes_list = AvailabilityService.compute_available_slots(
            day,
            booking_type,
            data['bookings'],
            data['exclusions'],
            data['weekly'],
            granularity_minutes=step,
            now=now,
        )

        midnight = start_of_day(day)
        duration = timedelta(minutes=booking_type.duration_minutes)
        slots: List[SlotData] = []
        for minutes in minutes_list:
            slot_start = midnight + timedelta(minutes=minutes)
            local_start = to_caller_local(slot_start, utc_offset_minutes)
            slots.append(SlotData(
                start=slot_start,
                end=slot_start + duration,
                minutes=minutes,
                start_time=format_minutes(minutes),
                local_start_time=local_start.strftime('%H:%M'),
            ))
        return slots

    @staticmethod
    def _require_full_week(weekly: Dict[int, WeeklyAvailability]) -> None:
        missing = [day for day in range(7) if day not in weekly]
        if missing:
            raise InvalidConfiguration(f"Weekly availability is missing days: {missing}")

    @staticmethod
    def is_within_weekly_window(interval: Interval, weekly: WeeklySchedule) -> bool:
        """
        Check if an interval lies entirely inside one resolved weekly window.

        Considers the window of the interval's own date and the previous
        date's window, which may have wrapped past midnight.
        """
        day = interval.start.date()
        for window_day in (day - timedelta(days=1), day):
            window = TimeWindowService.resolve_weekly_window(window_day, weekly)
            if window is not None and window.contains(interval):
                return True
        return False

    @staticmethod
    def ensure_weekly_availability(db: Session) -> List[WeeklyAvailability]:
        """
        Make sure a record exists for each of the seven weekdays.

        Missing days are created disabled with the default window so that
        enabling them later is a single toggle.
        """
        existing = {
            record.day_of_week: record
            for record in db.query(WeeklyAvailability).all()
        }
        created = 0
        for day_of_week in range(7):
            if day_of_week in existing:
                continue
            record = WeeklyAvailability(
                day_of_week=day_of_week,
                start_time_utc=parse_time_string(DEFAULT_WINDOW_START),
                end_time_utc=parse_time_string(DEFAULT_WINDOW_END),
                enabled=False,
            )
            db.add(record)
            existing[day_of_week] = record
            created += 1

        if created:
            db.commit()
            logger.info(f"Created {created} missing weekly availability records")

        return [existing[day_of_week] for day_of_week in range(7)]

    @staticmethod
    def get_weekly_availability(db: Session) -> List[WeeklyAvailability]:
        """All seven weekly records, Monday first."""
        return AvailabilityService.ensure_weekly_availability(db)

    @staticmethod
    def update_weekly_availability(
        db: Session,
        day_of_week: int,
        start_time_utc: time,
        end_time_utc: time,
        enabled: bool
    ) -> WeeklyAvailability:
        """
        Update one weekday's window.

        Equal start and end times describe a full 24-hour window.

        Raises:
            InvalidConfiguration: If the day or times are malformed
        """
        if not 0 <= day_of_week <= 6:
            raise InvalidConfiguration(f"Invalid day of week: {day_of_week}")

        AvailabilityService.ensure_weekly_availability(db)
        record = db.query(WeeklyAvailability).filter(
            WeeklyAvailability.day_of_week == day_of_week
        ).one()

        candidate = WeeklyAvailability(
            day_of_week=day_of_week,
            start_time_utc=start_time_utc,
            end_time_utc=end_time_utc,
            enabled=enabled,
        )
        TimeWindowService.validate_weekly_record(candidate)

        record.start_time_utc = start_time_utc
        record.end_time_utc = end_time_utc
        record.enabled = enabled
        db.commit()
        db.refresh(record)

        logger.info(
            f"Updated weekly availability for {record.day_name}: "
            f"{start_time_utc.strftime('%H:%M')}-{end_time_utc.strftime('%H:%M')} enabled={enabled}"
        )
        return record

    @staticmethod
    def update_weekly_schedule(
        db: Session,
        entries: Sequence[Dict[str, Any]]
    ) -> List[WeeklyAvailability]:
        """
        Update several weekdays at once.

        Every entry is validated before anything is written, so a bad entry
        leaves the schedule untouched.

        Args:
            entries: Dicts with day_of_week, start_time_utc, end_time_utc, enabled
        """
        seen: set[int] = set()
        for entry in entries:
            day_of_week = entry['day_of_week']
            if day_of_week in seen:
                raise InvalidConfiguration(f"Duplicate entry for day {day_of_week}")
            seen.add(day_of_week)
            if not 0 <= day_of_week <= 6:
                raise InvalidConfiguration(f"Invalid day of week: {day_of_week}")
            TimeWindowService.validate_weekly_record(WeeklyAvailability(
                day_of_week=day_of_week,
                start_time_utc=entry['start_time_utc'],
                end_time_utc=entry['end_time_utc'],
                enabled=entry['enabled'],
            ))

        records = {r.day_of_week: r for r in AvailabilityService.ensure_weekly_availability(db)}
        for entry in entries:
            record = records[entry['day_of_week']]
            record.start_time_utc = entry['start_time_utc']
            record.end_time_utc = entry['end_time_utc']
            record.enabled = entry['enabled']
        db.commit()

        logger.info(f"Updated weekly availability for {len(entries)} day(s)")
        return [records[day_of_week] for day_of_week in range(7)]

