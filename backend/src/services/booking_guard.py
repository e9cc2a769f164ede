"""
Booking conflict guard: the only code path that writes booking intervals.

Every reservation and reschedule runs as one transaction that first bumps the
calendar lock row, then re-checks overlapping bookings and exclusions against
committed state, then writes. The lock bump serialises writers on PostgreSQL
(row lock) and SQLite (database write lock), so two transactions can never
both pass the overlap check for intersecting intervals. On PostgreSQL the
bookings table additionally carries an exclusion constraint; a violation
surfaces as IntegrityError and is reported as SlotTaken.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import and_, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.constants import BOOKING_LOCK_ID, BOOKING_LOCK_NAME
from core.exceptions import (
    BookingError, ConflictError, ConflictReason, InvalidBookingType, InvalidConfiguration, NotFound,
    SlotExcluded, SlotTaken,
)
from models import Booking, BookingType, CalendarLock, Exclusion, User, WeeklyAvailability
from services.availability_service import AvailabilityService
from services.time_window_service import TimeWindowService
from shared_types.availability import Interval
from shared_types.booking import BookingDetails
from utils.datetime_utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)


class BookingGuard:
    """
    Atomic check-and-write for booking intervals.

    Conflicts are reported once to the caller; the guard never retries.
    """

    @staticmethod
    def ensure_booking_lock(db: Session) -> CalendarLock:
        """Create the calendar lock row if it does not exist yet."""
        lock = db.query(CalendarLock).filter(CalendarLock.id == BOOKING_LOCK_ID).first()
        if lock is None:
            lock = CalendarLock(id=BOOKING_LOCK_ID, name=BOOKING_LOCK_NAME, version=0)
            db.add(lock)
            try:
                db.commit()
            except IntegrityError:
                # Created concurrently by another worker
                db.rollback()
                lock = db.query(CalendarLock).filter(CalendarLock.id == BOOKING_LOCK_ID).one()
            else:
                logger.info("Created calendar lock row")
        return lock

    @staticmethod
    def acquire_booking_lock(db: Session) -> None:
        """
        Serialise booking writers for the rest of the current transaction.

        Must be the first statement of the transaction so that every read
        after it sees all bookings committed by earlier writers.
        """
        result = db.execute(
            update(CalendarLock)
            .where(CalendarLock.id == BOOKING_LOCK_ID)
            .values(version=CalendarLock.version + 1)
        )
        if result.rowcount == 0:
            db.rollback()
            BookingGuard.ensure_booking_lock(db)
            db.execute(
                update(CalendarLock)
                .where(CalendarLock.id == BOOKING_LOCK_ID)
                .values(version=CalendarLock.version + 1)
            )

    @staticmethod
    def _check_conflicts(
        db: Session,
        interval: Interval,
        exclude_booking_id: Optional[int] = None
    ) -> None:
        """
        Raise if the interval overlaps a committed booking or an exclusion.

        Every booking blocks its interval whatever its status.

        Raises:
            SlotTaken: If another booking overlaps
            SlotExcluded: If an exclusion covers any part of the interval
        """
        query = db.query(Booking).filter(
            Booking.start_at < interval.end,
            Booking.end_at > interval.start
        )
        if exclude_booking_id is not None:
            query = query.filter(Booking.id != exclude_booking_id)
        clash = query.first()
        if clash is not None:
            raise SlotTaken(
                f"Slot {interval.start.isoformat()} overlaps booking {clash.id}",
                start=interval.start.isoformat(),
            )

        first_date = interval.start.date()
        last_date = (interval.end - timedelta(microseconds=1)).date()
        exclusions = db.query(Exclusion).filter(
            Exclusion.start_date <= last_date,
            or_(
                Exclusion.end_date >= first_date,
                and_(Exclusion.end_date.is_(None), Exclusion.start_date >= first_date)
            )
        ).all()
        if TimeWindowService.exclusion_intervals_within(exclusions, interval):
            raise SlotExcluded(
                f"Slot {interval.start.isoformat()} is covered by an exclusion",
                start=interval.start.isoformat(),
            )

    @staticmethod
    def _check_customer_constraints(db: Session, interval: Interval, now: datetime) -> None:
        """Window and past checks applied to self-service bookings only."""
        if interval.start < now:
            raise ConflictError(
                "Cannot book a time in the past",
                reason=ConflictReason.IN_PAST,
                start=interval.start.isoformat(),
            )
        weekly = {r.day_of_week: r for r in db.query(WeeklyAvailability).all()}
        if not AvailabilityService.is_within_weekly_window(interval, weekly):
            raise ConflictError(
                "Requested time is outside the bookable hours",
                reason=ConflictReason.OUTSIDE_AVAILABILITY,
                start=interval.start.isoformat(),
            )

    @staticmethod
    def _resolve_user_id(db: Session, details: BookingDetails) -> Optional[int]:
        if details.user_id is not None:
            return details.user_id
        user = db.query(User).filter(User.email == details.email.strip().lower()).first()
        return user.id if user else None

    @staticmethod
    def try_reserve(
        db: Session,
        candidate_start: datetime,
        booking_type_id: int,
        details: BookingDetails,
        enforce_availability: bool = False,
        now: Optional[datetime] = None
    ) -> Booking:
        """
        Turn a slot into a persisted booking, or report why it cannot be.

        Args:
            db: Database session with no open write transaction
            candidate_start: Requested start instant
            booking_type_id: Type whose current duration and name are frozen into the booking
            details: Contact fields and status for the new booking
            enforce_availability: Also require the slot to lie inside a weekly
                window and in the future (self-service bookings)
            now: Current instant (defaults to the clock)

        Returns:
            The committed Booking

        Raises:
            InvalidBookingType: If the type does not exist or is deleted
            InvalidConfiguration: If the type has a non-positive duration
            SlotTaken: If another booking overlaps at commit time
            SlotExcluded: If an exclusion covers the slot
            ConflictError: Outside availability or in the past (self-service only)
        """
        start = ensure_utc(candidate_start)
        assert start is not None
        if now is None:
            now = utc_now()

        try:
            BookingGuard.acquire_booking_lock(db)

            booking_type = db.query(BookingType).filter(
                BookingType.id == booking_type_id,
                BookingType.is_deleted == False  # noqa: E712
            ).first()
            if booking_type is None:
                raise InvalidBookingType(
                    f"Booking type {booking_type_id} no longer exists",
                    booking_type_id=booking_type_id,
                )
            if booking_type.duration_minutes <= 0:
                raise InvalidConfiguration(
                    f"Booking type {booking_type_id} has an invalid duration",
                    booking_type_id=booking_type_id,
                )

            interval = Interval(start, start + timedelta(minutes=booking_type.duration_minutes))

            if enforce_availability:
                BookingGuard._check_customer_constraints(db, interval, now)

            BookingGuard._check_conflicts(db, interval)

            booking = Booking(
                title=details.title or booking_type.name,
                start_at=interval.start,
                end_at=interval.end,
                full_name=details.full_name,
                email=details.email,
                phone=details.phone,
                status=details.status,
                user_id=BookingGuard._resolve_user_id(db, details),
                booking_type_id=booking_type.id,
            )
            db.add(booking)
            db.commit()
            db.refresh(booking)

        except BookingError as e:
            db.rollback()
            logger.info(f"Reservation at {start.isoformat()} rejected: {e.message}")
            raise
        except IntegrityError as e:
            db.rollback()
            logger.warning(f"Booking overlap rejected by the database: {e}")
            raise SlotTaken(f"Slot {start.isoformat()} was taken concurrently", start=start.isoformat())
        except Exception as e:
            db.rollback()
            logger.exception(f"Failed to reserve slot at {start.isoformat()}: {e}")
            raise

        logger.info(f"Reserved booking {booking.id}: {booking.start_at.isoformat()} - {booking.end_at.isoformat()}")
        return booking

    @staticmethod
    def try_reschedule(
        db: Session,
        booking_id: int,
        new_start: datetime,
        enforce_availability: bool = False,
        now: Optional[datetime] = None
    ) -> Booking:
        """
        Move an existing booking, keeping its frozen duration.

        The booking's own interval never conflicts with itself.

        Raises:
            NotFound: If the booking does not exist
            SlotTaken / SlotExcluded / ConflictError: As for try_reserve
        """
        start = ensure_utc(new_start)
        assert start is not None
        if now is None:
            now = utc_now()

        try:
            BookingGuard.acquire_booking_lock(db)

            booking = db.query(Booking).filter(Booking.id == booking_id).first()
            if booking is None:
                raise NotFound(f"Booking {booking_id} not found")

            interval = Interval(start, start + (booking.end_at - booking.start_at))

            if enforce_availability:
                BookingGuard._check_customer_constraints(db, interval, now)

            BookingGuard._check_conflicts(db, interval, exclude_booking_id=booking.id)

            booking.start_at = interval.start
            booking.end_at = interval.end
            db.commit()
            db.refresh(booking)

        except BookingError as e:
            db.rollback()
            logger.info(f"Reschedule of booking {booking_id} to {start.isoformat()} rejected: {e.message}")
            raise
        except IntegrityError as e:
            db.rollback()
            logger.warning(f"Booking overlap rejected by the database: {e}")
            raise SlotTaken(f"Slot {start.isoformat()} was taken concurrently", start=start.isoformat())
        except Exception as e:
            db.rollback()
            logger.exception(f"Failed to reschedule booking {booking_id}: {e}")
            raise

        logger.info(f"Rescheduled booking {booking.id} to {booking.start_at.isoformat()}")
        return booking
