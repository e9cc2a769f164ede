"""
Time window model: turns stored UTC wall-clock fields into concrete intervals.

This is the single place where weekly availability and exclusions are
converted into UTC instants. The slot resolver, the unavailability overlay
and the booking guard all go through it so the UI overlay and the bookable
slots can never disagree.
"""

import logging
from datetime import date as date_type, time, timedelta
from typing import Iterable, List, Mapping, Optional, Sequence, Union

from core.exceptions import InvalidConfiguration, InvalidExclusion
from models import Exclusion, WeeklyAvailability
from shared_types.availability import Interval
from utils.datetime_utils import combine_utc, start_of_day

logger = logging.getLogger(__name__)

WeeklySchedule = Union[Mapping[int, WeeklyAvailability], Iterable[WeeklyAvailability]]


class TimeWindowService:
    """
    Pure interval arithmetic over availability and exclusion records.

    No database access. Every method works on already-loaded records.
    """

    @staticmethod
    def day_bounds(day: date_type) -> Interval:
        """Whole UTC calendar day as [00:00, next day 00:00)."""
        return Interval(start_of_day(day), start_of_day(day + timedelta(days=1)))

    @staticmethod
    def _lookup_day(weekly: WeeklySchedule, day_of_week: int) -> Optional[WeeklyAvailability]:
        if isinstance(weekly, Mapping):
            return weekly.get(day_of_week)
        for record in weekly:
            if record.day_of_week == day_of_week:
                return record
        return None

    @staticmethod
    def validate_weekly_record(record: WeeklyAvailability) -> None:
        """
        Check a weekly availability record before it is used or saved.

        Raises:
            InvalidConfiguration: If the day or times are malformed
        """
        if record.day_of_week is None or not 0 <= record.day_of_week <= 6:
            raise InvalidConfiguration(f"Invalid day of week: {record.day_of_week}")
        if not isinstance(record.start_time_utc, time) or not isinstance(record.end_time_utc, time):
            raise InvalidConfiguration(f"Weekly availability for day {record.day_of_week} is missing its times")
        for value in (record.start_time_utc, record.end_time_utc):
            if value.second or value.microsecond:
                raise InvalidConfiguration("Weekly availability times must be whole minutes")

    @staticmethod
    def resolve_weekly_window(day: date_type, weekly: WeeklySchedule) -> Optional[Interval]:
        """
        Resolve the bookable window for a UTC calendar date.

        The end is placed on the same date; if that is at or before the start
        the window wraps and the end moves to the following day. A 24-hour
        window is therefore expressed with equal start and end times.

        Args:
            day: UTC calendar date
            weekly: The seven weekly availability records (list or day->record mapping)

        Returns:
            [window_start, window_end) or None when the day is disabled

        Raises:
            InvalidConfiguration: If the weekday has no record or the record is malformed
        """
        record = TimeWindowService._lookup_day(weekly, day.weekday())
        if record is None:
            raise InvalidConfiguration(f"No weekly availability configured for {day.strftime('%A')}")

        if not record.enabled:
            return None

        TimeWindowService.validate_weekly_record(record)

        window_start = combine_utc(day, record.start_time_utc)
        window_end = combine_utc(day, record.end_time_utc)
        if window_end <= window_start:
            window_end += timedelta(days=1)
        return Interval(window_start, window_end)

    @staticmethod
    def validate_exclusion(exclusion: Exclusion) -> None:
        """
        Check the date/time invariants of an exclusion.

        Raises:
            InvalidExclusion: If the end date precedes the start date, or the
                resolved interval would be empty or reversed
        """
        if exclusion.start_date is None:
            raise InvalidExclusion("Exclusion has no start date", exclusion_id=exclusion.id)
        if exclusion.end_date is not None and exclusion.end_date < exclusion.start_date:
            raise InvalidExclusion(
                f"Exclusion end date {exclusion.end_date} is before start date {exclusion.start_date}",
                exclusion_id=exclusion.id,
            )
        lower, upper = TimeWindowService._exclusion_bounds(exclusion)
        if upper <= lower:
            raise InvalidExclusion(
                f"Exclusion ends at or before it starts ({lower.isoformat()} - {upper.isoformat()})",
                exclusion_id=exclusion.id,
            )

    @staticmethod
    def _exclusion_bounds(exclusion: Exclusion):
        lower = combine_utc(exclusion.start_date, exclusion.start_time or time(0, 0))
        last_day = exclusion.end_date or exclusion.start_date
        if exclusion.end_time is None:
            # Absent end time means "through the end of the last day"
            upper = start_of_day(last_day + timedelta(days=1))
        else:
            upper = combine_utc(last_day, exclusion.end_time)
        return lower, upper

    @staticmethod
    def resolve_exclusion_interval(exclusion: Exclusion, reference_date: Optional[date_type] = None) -> Interval:
        """
        Resolve an exclusion into its full [start, end) interval.

        The interval may span several days. When ``reference_date`` is given
        the interval is clipped to that calendar day; an exclusion that does
        not touch the day resolves to an empty interval at the day's start.

        Raises:
            InvalidExclusion: If the exclusion violates its invariants
        """
        TimeWindowService.validate_exclusion(exclusion)
        lower, upper = TimeWindowService._exclusion_bounds(exclusion)
        interval = Interval(lower, upper)
        if reference_date is None:
            return interval
        bounds = TimeWindowService.day_bounds(reference_date)
        clipped = interval.clip(bounds)
        return clipped if clipped is not None else Interval(bounds.start, bounds.start)

    @staticmethod
    def exclusion_intervals_within(exclusions: Iterable[Exclusion], bounds: Interval) -> List[Interval]:
        """
        Resolve exclusions and clip them to ``bounds``.

        Malformed exclusions are logged and skipped so a single bad record
        never blocks slot computation.
        """
        intervals: List[Interval] = []
        for exclusion in exclusions:
            try:
                interval = TimeWindowService.resolve_exclusion_interval(exclusion)
            except InvalidExclusion as e:
                logger.warning(f"Skipping malformed exclusion {exclusion.id}: {e.message}")
                continue
            clipped = interval.clip(bounds)
            if clipped is not None:
                intervals.append(clipped)
        return intervals

    @staticmethod
    def open_spans_for_day(day: date_type, weekly: WeeklySchedule) -> List[Interval]:
        """
        Portions of a calendar day covered by a weekly window.

        Includes the tail of the previous day's window when it wraps past
        midnight into ``day``.
        """
        bounds = TimeWindowService.day_bounds(day)
        spans: List[Interval] = []
        for window_day in (day - timedelta(days=1), day):
            window = TimeWindowService.resolve_weekly_window(window_day, weekly)
            if window is None:
                continue
            clipped = window.clip(bounds)
            if clipped is not None:
                spans.append(clipped)
        return TimeWindowService.merge_intervals(spans)

    @staticmethod
    def merge_intervals(intervals: Sequence[Interval]) -> List[Interval]:
        """Merge overlapping or touching intervals into a sorted, disjoint list."""
        merged: List[Interval] = []
        for interval in sorted(intervals, key=lambda i: (i.start, i.end)):
            if merged and interval.start <= merged[-1].end:
                last = merged[-1]
                merged[-1] = Interval(last.start, max(last.end, interval.end))
            else:
                merged.append(interval)
        return merged

    @staticmethod
    def subtract_intervals(base: Interval, removals: Sequence[Interval]) -> List[Interval]:
        """Parts of ``base`` not covered by any of ``removals``."""
        remaining: List[Interval] = []
        cursor = base.start
        for removal in TimeWindowService.merge_intervals(removals):
            if removal.end <= cursor or removal.start >= base.end:
                continue
            if removal.start > cursor:
                remaining.append(Interval(cursor, removal.start))
            cursor = max(cursor, removal.end)
        if cursor < base.end:
            remaining.append(Interval(cursor, base.end))
        return remaining
