"""
Expiring keyed store for booking attempts.

Rows live in the database so attempts survive restarts and are shared by all
workers. An expired row is reported exactly like a missing one.
"""

import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from core.constants import BOOKING_SESSION_TTL_MINUTES, BOOKING_STATUS_PENDING, SESSION_STATE_SLOT_RESERVED
from core.exceptions import SessionExpiredOrMissing
from models import Booking, BookingSession
from utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


class SessionStore:
    """Database-backed store of BookingSession rows."""

    @staticmethod
    def create(
        db: Session,
        email: str,
        purpose: str,
        state: str,
        booking_id: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> BookingSession:
        """Create a session that expires BOOKING_SESSION_TTL_MINUTES after creation."""
        if now is None:
            now = utc_now()
        session = BookingSession(
            key=secrets.token_urlsafe(32),
            email=email,
            purpose=purpose,
            state=state,
            booking_id=booking_id,
            created_at=now,
            expires_at=now + timedelta(minutes=BOOKING_SESSION_TTL_MINUTES),
        )
        db.add(session)
        db.commit()
        db.refresh(session)
        return session

    @staticmethod
    def get(db: Session, key: str, now: Optional[datetime] = None) -> BookingSession:
        """
        Raises:
            SessionExpiredOrMissing: If the key is unknown or its session has expired
        """
        if now is None:
            now = utc_now()
        session = db.query(BookingSession).filter(BookingSession.key == key).first()
        if session is None or not session.is_live(now):
            raise SessionExpiredOrMissing("Booking session has expired or does not exist; start again")
        return session

    @staticmethod
    def save(db: Session, session: BookingSession) -> BookingSession:
        db.add(session)
        db.commit()
        return session

    @staticmethod
    def purge_expired(db: Session, now: Optional[datetime] = None) -> int:
        """
        Delete sessions created more than BOOKING_SESSION_TTL_MINUTES ago.

        A swept session still holding a reserved slot never reached
        confirmation, so its pending booking is deleted with it.

        Returns:
            Number of sessions removed
        """
        if now is None:
            now = utc_now()
        cutoff = now - timedelta(minutes=BOOKING_SESSION_TTL_MINUTES)
        stale = db.query(BookingSession).filter(BookingSession.created_at < cutoff)

        stranded_ids = [
            booking_id for (booking_id,) in stale.filter(
                BookingSession.state == SESSION_STATE_SLOT_RESERVED,
                BookingSession.booking_id.isnot(None)
            ).with_entities(BookingSession.booking_id)
        ]
        if stranded_ids:
            released = db.query(Booking).filter(
                Booking.id.in_(stranded_ids),
                Booking.status == BOOKING_STATUS_PENDING
            ).delete(synchronize_session=False)
            if released:
                logger.info(f"Released {released} unconfirmed bookings from expired attempts")

        deleted = stale.delete(synchronize_session=False)
        db.commit()
        return deleted
