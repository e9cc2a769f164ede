"""
Booking service for admin booking management and customer self-management.

All interval changes go through BookingGuard. Customer management is gated
by a single-use management token whose SHA-256 is stored on the booking, so
replaced or consumed tokens are rejected even before they expire.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from core.constants import BOOKING_STATUS_CONFIRMED, BOOKING_STATUSES
from core.exceptions import BookingError, InvalidConfiguration, NotFound, TokenExpired, TokenInvalid
from models import Booking
from services.booking_guard import BookingGuard
from services.jwt_service import jwt_service
from services.notification_service import Notifier, NotificationService
from shared_types.booking import BookingDetails
from utils.datetime_utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)


class BookingService:
    """Service class for booking operations outside the OTP workflow."""

    # Management tokens

    @staticmethod
    def mint_management_token(db: Session, booking: Booking, now: Optional[datetime] = None) -> str:
        """
        Issue a management token for a booking, replacing any earlier one.

        Returns:
            The token; only its hash is persisted
        """
        token, expires_at = jwt_service.create_management_token(booking.id, booking.email, now=now)
        booking.management_token_hash = jwt_service.get_token_sha256_hash(token)
        booking.management_token_expires_at = expires_at
        db.commit()
        logger.info(f"Issued management token for booking {booking.id}")
        return token

    @staticmethod
    def resolve_management_token(db: Session, token: str, now: Optional[datetime] = None) -> Booking:
        """
        Find the booking a management token grants access to.

        Raises:
            TokenExpired: If the token is past its expiry
            TokenInvalid: If the token is forged, replaced, already used, or
                does not match the booking's email
        """
        if now is None:
            now = utc_now()
        payload = jwt_service.verify_management_token(token, now=now)

        booking = db.query(Booking).filter(Booking.id == payload.booking_id).first()
        if booking is None:
            raise TokenInvalid("Booking for this link no longer exists")
        if booking.management_token_hash != jwt_service.get_token_sha256_hash(token):
            raise TokenInvalid("This link has already been used or was replaced")
        if payload.email_hash != jwt_service.hash_email(booking.email):
            raise TokenInvalid("This link does not belong to the booking")
        if booking.management_token_expires_at is not None and booking.management_token_expires_at <= now:
            raise TokenExpired("This link has expired; request a new one")
        return booking

    @staticmethod
    def _consume_management_token(db: Session, booking: Booking, token: str) -> str:
        """
        Atomically clear the stored token hash.

        Only one concurrent caller can consume a given token.

        Returns:
            The consumed hash, so it can be restored if the action fails
        """
        token_hash = jwt_service.get_token_sha256_hash(token)
        result = db.execute(
            update(Booking)
            .where(Booking.id == booking.id, Booking.management_token_hash == token_hash)
            .values(management_token_hash=None)
        )
        if result.rowcount != 1:
            db.rollback()
            raise TokenInvalid("This link has already been used")
        db.commit()
        return token_hash

    @staticmethod
    def _restore_management_token(db: Session, booking_id: int, token_hash: str) -> None:
        db.execute(
            update(Booking)
            .where(Booking.id == booking_id, Booking.management_token_hash.is_(None))
            .values(management_token_hash=token_hash)
        )
        db.commit()

    @staticmethod
    def get_managed_booking(db: Session, token: str, now: Optional[datetime] = None) -> Booking:
        """View a booking through its management link. Does not consume the token."""
        return BookingService.resolve_management_token(db, token, now=now)

    @staticmethod
    def reschedule_managed_booking(
        db: Session,
        token: str,
        new_start: datetime,
        notifier: Notifier,
        now: Optional[datetime] = None
    ) -> Booking:
        """
        Move a booking to a new start through its management link.

        The token is consumed on success. On a conflict it stays valid so the
        customer can pick another slot.
        """
        if now is None:
            now = utc_now()
        booking = BookingService.resolve_management_token(db, token, now=now)
        token_hash = BookingService._consume_management_token(db, booking, token)

        try:
            booking = BookingGuard.try_reschedule(
                db, booking.id, new_start, enforce_availability=True, now=now
            )
        except BookingError:
            BookingService._restore_management_token(db, booking.id, token_hash)
            raise

        booking.management_token_expires_at = None
        db.commit()
        NotificationService.send_booking_update(notifier, booking)
        return booking

    @staticmethod
    def cancel_managed_booking(
        db: Session,
        token: str,
        notifier: Notifier,
        now: Optional[datetime] = None
    ) -> None:
        """Delete a booking through its management link, consuming the token."""
        booking = BookingService.resolve_management_token(db, token, now=now)
        BookingService._consume_management_token(db, booking, token)

        db.delete(booking)
        db.commit()
        logger.info(f"Booking {booking.id} cancelled by customer")
        NotificationService.send_booking_cancellation(notifier, booking)

    # Admin operations

    @staticmethod
    def list_bookings(
        db: Session,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> List[Booking]:
        """List bookings overlapping [start, end), ordered by start."""
        query = db.query(Booking)
        if end is not None:
            query = query.filter(Booking.start_at < ensure_utc(end))
        if start is not None:
            query = query.filter(Booking.end_at > ensure_utc(start))
        return query.order_by(Booking.start_at).all()

    @staticmethod
    def get_booking(db: Session, booking_id: int) -> Booking:
        booking = db.query(Booking).filter(Booking.id == booking_id).first()
        if booking is None:
            raise NotFound(f"Booking {booking_id} not found")
        return booking

    @staticmethod
    def create_booking(
        db: Session,
        booking_type_id: int,
        start: datetime,
        details: BookingDetails,
        notifier: Notifier,
        now: Optional[datetime] = None
    ) -> Booking:
        """
        Create a booking on behalf of a customer, without a code.

        Admins may book outside the weekly window and in the past, but never
        over another booking or an exclusion.
        """
        if details.status not in BOOKING_STATUSES:
            raise InvalidConfiguration(f"Invalid booking status: {details.status}")
        booking = BookingGuard.try_reserve(
            db, start, booking_type_id, details, enforce_availability=False, now=now
        )
        token = None
        if booking.status == BOOKING_STATUS_CONFIRMED:
            token = BookingService.mint_management_token(db, booking, now=now)
        NotificationService.send_booking_confirmation(notifier, booking, management_token=token)
        return booking

    @staticmethod
    def update_booking(
        db: Session,
        booking_id: int,
        notifier: Notifier,
        title: Optional[str] = None,
        start: Optional[datetime] = None,
        status: Optional[str] = None,
        full_name: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Booking:
        """
        Update a booking's fields; a new start keeps the frozen duration.

        Raises:
            NotFound: If the booking does not exist
            InvalidConfiguration: If the status is unknown
            SlotTaken / SlotExcluded: If the new time conflicts
        """
        booking = BookingService.get_booking(db, booking_id)
        if status is not None and status not in BOOKING_STATUSES:
            raise InvalidConfiguration(f"Invalid booking status: {status}")

        new_start = ensure_utc(start) if start is not None else None
        if new_start is not None and new_start != booking.start_at:
            booking = BookingGuard.try_reschedule(db, booking_id, new_start, enforce_availability=False, now=now)

        if title is not None:
            booking.title = title
        if status is not None:
            booking.status = status
        if full_name is not None:
            booking.full_name = full_name
        if email is not None and email != booking.email:
            booking.email = email
            # Links were bound to the old address
            booking.management_token_hash = None
            booking.management_token_expires_at = None
        if phone is not None:
            booking.phone = phone
        db.commit()
        db.refresh(booking)

        logger.info(f"Booking {booking.id} updated by admin")
        NotificationService.send_booking_update(notifier, booking)
        return booking

    @staticmethod
    def delete_booking(db: Session, booking_id: int, notifier: Notifier) -> None:
        booking = BookingService.get_booking(db, booking_id)
        db.delete(booking)
        db.commit()
        logger.info(f"Booking {booking_id} deleted by admin")
        NotificationService.send_booking_cancellation(notifier, booking)
