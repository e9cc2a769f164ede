"""
Tests for the booking conflict guard.

Uses the SQLite test database because the guard's guarantees come from its
transaction handling.
"""

import threading
from datetime import time, timedelta

import pytest
from sqlalchemy.orm.attributes import set_committed_value

from core.exceptions import (
    ConflictError, ConflictReason, InvalidBookingType, InvalidConfiguration, NotFound, SlotExcluded, SlotTaken,
)
from models import Booking, CalendarLock, User
from services.booking_guard import BookingGuard
from shared_types.booking import BookingDetails
from tests.utils import (
    MONDAY, SUNDAY, at, create_booking, create_booking_type, create_exclusion, open_every_day, set_weekday,
)

NOW = at(SUNDAY, 8)


def _details(email: str = "customer@example.com", status: str = "confirmed") -> BookingDetails:
    return BookingDetails(full_name="Test Customer", email=email, status=status)


class TestTryReserve:

    def test_creates_booking_with_frozen_fields(self, db_session):
        booking_type = create_booking_type(db_session, name="Massage", duration_minutes=45)
        booking = BookingGuard.try_reserve(db_session, at(MONDAY, 10), booking_type.id, _details(), now=NOW)

        assert booking.id is not None
        assert booking.title == "Massage"
        assert booking.start_at == at(MONDAY, 10)
        assert booking.end_at == at(MONDAY, 10, 45)
        assert booking.booking_type_id == booking_type.id

    def test_type_edits_do_not_touch_existing_bookings(self, db_session):
        booking_type = create_booking_type(db_session, duration_minutes=30)
        booking = BookingGuard.try_reserve(db_session, at(MONDAY, 10), booking_type.id, _details(), now=NOW)

        booking_type.duration_minutes = 90
        booking_type.name = "Renamed"
        db_session.commit()
        db_session.refresh(booking)

        assert booking.end_at == at(MONDAY, 10, 30)
        assert booking.title == "Consultation"

    def test_overlap_is_rejected(self, db_session):
        booking_type = create_booking_type(db_session)
        create_booking(db_session, at(MONDAY, 10), at(MONDAY, 11))

        with pytest.raises(SlotTaken) as exc_info:
            BookingGuard.try_reserve(db_session, at(MONDAY, 10, 30), booking_type.id, _details(), now=NOW)
        assert exc_info.value.reason == ConflictReason.SLOT_TAKEN
        assert db_session.query(Booking).count() == 1

    def test_pending_booking_blocks(self, db_session):
        booking_type = create_booking_type(db_session)
        create_booking(db_session, at(MONDAY, 10), at(MONDAY, 11), status="pending")
        with pytest.raises(SlotTaken):
            BookingGuard.try_reserve(db_session, at(MONDAY, 10), booking_type.id, _details(), now=NOW)

    def test_touching_bookings_are_allowed(self, db_session):
        booking_type = create_booking_type(db_session)
        create_booking(db_session, at(MONDAY, 10), at(MONDAY, 11))
        booking = BookingGuard.try_reserve(db_session, at(MONDAY, 11), booking_type.id, _details(), now=NOW)
        assert booking.start_at == at(MONDAY, 11)

    def test_excluded_slot(self, db_session):
        booking_type = create_booking_type(db_session)
        create_exclusion(db_session, MONDAY, start_time=time(10, 30), end_time=time(12, 0))
        with pytest.raises(SlotExcluded) as exc_info:
            BookingGuard.try_reserve(db_session, at(MONDAY, 10), booking_type.id, _details(), now=NOW)
        assert exc_info.value.to_dict()["reason"] == "excluded"

    def test_malformed_exclusion_does_not_block(self, db_session):
        booking_type = create_booking_type(db_session)
        create_exclusion(db_session, MONDAY, end_date=SUNDAY)
        BookingGuard.try_reserve(db_session, at(MONDAY, 10), booking_type.id, _details(), now=NOW)

    def test_deleted_booking_type(self, db_session):
        booking_type = create_booking_type(db_session, is_deleted=True)
        with pytest.raises(InvalidBookingType):
            BookingGuard.try_reserve(db_session, at(MONDAY, 10), booking_type.id, _details(), now=NOW)

    def test_unknown_booking_type(self, db_session):
        with pytest.raises(InvalidBookingType):
            BookingGuard.try_reserve(db_session, at(MONDAY, 10), 9999, _details(), now=NOW)

    def test_non_positive_duration_is_configuration_error(self, db_session):
        booking_type = create_booking_type(db_session)
        # Stands in for a row written before the CHECK constraint existed
        set_committed_value(booking_type, "duration_minutes", 0)
        with pytest.raises(InvalidConfiguration):
            BookingGuard.try_reserve(db_session, at(MONDAY, 10), booking_type.id, _details(), now=NOW)
        assert db_session.query(Booking).count() == 0

    def test_admin_path_ignores_window_and_past(self, db_session):
        booking_type = create_booking_type(db_session)
        # Weekdays are seeded disabled
        booking = BookingGuard.try_reserve(
            db_session, at(SUNDAY, 3), booking_type.id, _details(), enforce_availability=False, now=at(MONDAY, 12)
        )
        assert booking.id is not None

    def test_customer_path_requires_window(self, db_session):
        booking_type = create_booking_type(db_session)
        open_every_day(db_session)
        with pytest.raises(ConflictError) as exc_info:
            BookingGuard.try_reserve(
                db_session, at(MONDAY, 16, 30), booking_type.id, _details(), enforce_availability=True, now=NOW
            )
        assert exc_info.value.reason == ConflictReason.OUTSIDE_AVAILABILITY

    def test_customer_path_accepts_previous_day_spill(self, db_session):
        booking_type = create_booking_type(db_session)
        set_weekday(db_session, 6, time(22, 0), time(2, 0))
        booking = BookingGuard.try_reserve(
            db_session, at(MONDAY, 0, 30), booking_type.id, _details(), enforce_availability=True, now=NOW
        )
        assert booking.end_at == at(MONDAY, 1, 30)

    def test_customer_path_rejects_past(self, db_session):
        booking_type = create_booking_type(db_session)
        open_every_day(db_session)
        with pytest.raises(ConflictError) as exc_info:
            BookingGuard.try_reserve(
                db_session, at(MONDAY, 10), booking_type.id, _details(),
                enforce_availability=True, now=at(MONDAY, 10, 5)
            )
        assert exc_info.value.reason == ConflictReason.IN_PAST

    def test_bumps_lock_version(self, db_session):
        booking_type = create_booking_type(db_session)
        before = db_session.query(CalendarLock).one().version
        BookingGuard.try_reserve(db_session, at(MONDAY, 10), booking_type.id, _details(), now=NOW)
        db_session.expire_all()
        assert db_session.query(CalendarLock).one().version == before + 1

    def test_recreates_missing_lock_row(self, db_session):
        booking_type = create_booking_type(db_session)
        db_session.query(CalendarLock).delete()
        db_session.commit()
        BookingGuard.try_reserve(db_session, at(MONDAY, 10), booking_type.id, _details(), now=NOW)
        assert db_session.query(CalendarLock).count() == 1

    def test_links_existing_user_by_email(self, db_session):
        user = User(email="customer@example.com", role="customer")
        db_session.add(user)
        db_session.commit()
        booking_type = create_booking_type(db_session)
        booking = BookingGuard.try_reserve(db_session, at(MONDAY, 10), booking_type.id, _details(), now=NOW)
        assert booking.user_id == user.id


class TestConcurrentReservations:

    def test_only_one_of_many_racers_wins(self, db_session, session_factory):
        """Overlapping reservations from parallel sessions: exactly one commits."""
        booking_type = create_booking_type(db_session)
        racers = 6
        barrier = threading.Barrier(racers)
        outcomes: list[str] = []
        lock = threading.Lock()

        def attempt(offset_minutes: int) -> None:
            session = session_factory()
            try:
                barrier.wait()
                BookingGuard.try_reserve(
                    session,
                    at(MONDAY, 10) + timedelta(minutes=offset_minutes),
                    booking_type.id,
                    _details(email=f"racer{offset_minutes}@example.com"),
                    now=NOW,
                )
                result = "ok"
            except SlotTaken:
                result = "taken"
            finally:
                session.close()
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=attempt, args=(i * 5,)) for i in range(racers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(outcomes) == ["ok"] + ["taken"] * (racers - 1)
        db_session.expire_all()
        assert db_session.query(Booking).count() == 1


class TestTryReschedule:

    def test_keeps_frozen_duration(self, db_session):
        booking_type = create_booking_type(db_session, duration_minutes=45)
        booking = BookingGuard.try_reserve(db_session, at(MONDAY, 10), booking_type.id, _details(), now=NOW)
        booking_type.duration_minutes = 120
        db_session.commit()

        moved = BookingGuard.try_reschedule(db_session, booking.id, at(MONDAY, 14), now=NOW)
        assert moved.end_at == at(MONDAY, 14, 45)

    def test_does_not_conflict_with_itself(self, db_session):
        booking_type = create_booking_type(db_session)
        booking = BookingGuard.try_reserve(db_session, at(MONDAY, 10), booking_type.id, _details(), now=NOW)
        moved = BookingGuard.try_reschedule(db_session, booking.id, at(MONDAY, 10, 30), now=NOW)
        assert moved.start_at == at(MONDAY, 10, 30)

    def test_conflict_leaves_booking_in_place(self, db_session):
        booking_type = create_booking_type(db_session)
        booking = BookingGuard.try_reserve(db_session, at(MONDAY, 10), booking_type.id, _details(), now=NOW)
        create_booking(db_session, at(MONDAY, 14), at(MONDAY, 15))

        with pytest.raises(SlotTaken):
            BookingGuard.try_reschedule(db_session, booking.id, at(MONDAY, 14, 30), now=NOW)
        db_session.refresh(booking)
        assert booking.start_at == at(MONDAY, 10)

    def test_unknown_booking(self, db_session):
        with pytest.raises(NotFound):
            BookingGuard.try_reschedule(db_session, 4242, at(MONDAY, 10), now=NOW)
