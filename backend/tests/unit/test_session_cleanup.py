"""
Tests for the booking session store and its periodic sweep.
"""

from datetime import timedelta
from unittest.mock import patch

import pytest

from core.exceptions import SessionExpiredOrMissing
from models import Booking, BookingSession
from services.booking_guard import BookingGuard
from services.booking_workflow import BookingWorkflow
from services.otp_service import OTPService
from services.session_cleanup_scheduler import SessionCleanupScheduler
from services.session_store import SessionStore
from shared_types.booking import BookingDetails
from tests.utils import MONDAY, at, create_booking_type, open_every_day, utc

T0 = at(MONDAY, 9)
EMAIL = "ada@example.com"


class TestSessionStore:

    def test_keys_are_unguessable(self, db_session):
        first = SessionStore.create(db_session, "a@example.com", "booking", "started", now=T0)
        second = SessionStore.create(db_session, "a@example.com", "booking", "started", now=T0)
        assert first.key != second.key
        assert len(first.key) >= 40

    def test_expired_session_looks_missing(self, db_session):
        session = SessionStore.create(db_session, "a@example.com", "booking", "started", now=T0)
        assert SessionStore.get(db_session, session.key, now=T0 + timedelta(minutes=14)).key == session.key
        with pytest.raises(SessionExpiredOrMissing):
            SessionStore.get(db_session, session.key, now=T0 + timedelta(minutes=15))

    def test_purge_expired(self, db_session):
        SessionStore.create(db_session, "old@example.com", "booking", "started", now=T0 - timedelta(minutes=20))
        fresh = SessionStore.create(db_session, "new@example.com", "booking", "started", now=T0)

        assert SessionStore.purge_expired(db_session, now=T0) == 1
        assert [s.key for s in db_session.query(BookingSession).all()] == [fresh.key]


class TestUnconfirmedReservations:

    def _reserve_late(self, db, notifier, booking_type):
        """Reserve a second before the attempt expires and confirm a second after."""
        session = BookingWorkflow.start(db, EMAIL, now=T0)
        BookingWorkflow.issue_code(db, session.key, notifier, now=T0 + timedelta(minutes=10))
        verified = BookingWorkflow.verify_code(
            db, session.key, notifier.last_code(EMAIL), notifier, now=T0 + timedelta(minutes=11)
        )
        BookingWorkflow.reserve(
            db, session.key, verified.verification_token, at(MONDAY, 10), booking_type.id,
            full_name="Ada Lovelace", email=EMAIL, now=T0 + timedelta(minutes=14, seconds=59),
        )
        with pytest.raises(SessionExpiredOrMissing):
            BookingWorkflow.confirm(db, session.key, notifier, now=T0 + timedelta(minutes=15, seconds=1))

    def test_sweep_releases_the_slot(self, db_session, notifier):
        open_every_day(db_session)
        booking_type = create_booking_type(db_session)
        self._reserve_late(db_session, notifier, booking_type)
        assert db_session.query(Booking).one().status == "pending"

        assert SessionStore.purge_expired(db_session, now=T0 + timedelta(hours=1)) == 1
        assert db_session.query(Booking).count() == 0

        booking = BookingGuard.try_reserve(
            db_session, at(MONDAY, 10), booking_type.id,
            BookingDetails(full_name="Grace Hopper", email="grace@example.com"), now=T0 + timedelta(hours=1),
        )
        assert booking.start_at == at(MONDAY, 10)

    def test_sweep_keeps_confirmed_bookings(self, db_session, notifier):
        open_every_day(db_session)
        booking_type = create_booking_type(db_session)
        session = BookingWorkflow.start(db_session, EMAIL, now=T0)
        BookingWorkflow.issue_code(db_session, session.key, notifier, now=T0)
        verified = BookingWorkflow.verify_code(db_session, session.key, notifier.last_code(EMAIL), notifier, now=T0)
        BookingWorkflow.reserve(
            db_session, session.key, verified.verification_token, at(MONDAY, 10), booking_type.id,
            full_name="Ada Lovelace", email=EMAIL, now=T0,
        )
        BookingWorkflow.confirm(db_session, session.key, notifier, now=T0)

        assert SessionStore.purge_expired(db_session, now=T0 + timedelta(hours=1)) == 1
        assert db_session.query(Booking).one().status == "confirmed"


class TestSessionCleanupScheduler:

    def test_execute_cleanup_removes_stale_rows(self, db_session):
        SessionStore.create(db_session, "old@example.com", "booking", "started", now=utc(2000, 1, 1))
        OTPService.issue_code(db_session, "old@example.com", "booking", now=utc(2000, 1, 1))

        scheduler = SessionCleanupScheduler()
        assert scheduler.execute_cleanup() == (1, 1)

    def test_execute_cleanup_swallows_errors(self):
        scheduler = SessionCleanupScheduler()
        with patch("services.session_cleanup_scheduler.SessionStore.purge_expired", side_effect=RuntimeError("boom")):
            assert scheduler.execute_cleanup() == (0, 0)

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        scheduler = SessionCleanupScheduler()
        await scheduler.start_scheduler()
        try:
            job = scheduler.scheduler.get_job("booking_session_cleanup")
            assert job is not None
            assert job.max_instances == 1
        finally:
            await scheduler.stop_scheduler()
        assert not scheduler._is_started
