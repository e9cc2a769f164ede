"""
Code-gated booking workflow for unauthenticated customers.

Each attempt is a BookingSession moving through:

    Started -> CodeIssued -> CodeVerified -> SlotReserved -> Confirmed

with Abandoned reachable from every non-terminal state. Renewing access to
an existing booking uses the same session with purpose "manage" and goes
straight from CodeVerified to Confirmed by minting a new management token.

Retryable failures (wrong digits, slot conflicts) leave the state alone.
Expired or used codes and any token mismatch abandon the attempt.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from core.constants import (
    BOOKING_STATUS_CONFIRMED, BOOKING_STATUS_PENDING, OTP_CODE_EXPIRE_MINUTES, PURPOSE_BOOKING, PURPOSE_MANAGE,
    SESSION_STATE_SLOT_RESERVED,
)
from core.exceptions import (
    InvalidCode, NotFound, NotificationDeliveryError, TokenExpired, TokenInvalid,
)
from models import Booking, BookingSession
from services.booking_guard import BookingGuard
from services.booking_service import BookingService
from services.jwt_service import jwt_service
from services.notification_service import Notifier, NotificationService
from services.otp_service import OTPService, normalize_email
from services.session_store import SessionStore
from shared_types.booking import BookingDetails
from utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    STARTED = "started"
    CODE_ISSUED = "code_issued"
    CODE_VERIFIED = "code_verified"
    SLOT_RESERVED = SESSION_STATE_SLOT_RESERVED
    CONFIRMED = "confirmed"
    ABANDONED = "abandoned"


@dataclass
class VerificationResult:
    """Outcome of a successful code check."""
    state: str
    verification_token: Optional[str] = None  # Booking attempts
    management_token: Optional[str] = None  # Access renewals
    booking_id: Optional[int] = None


@dataclass
class ConfirmationResult:
    booking: Booking
    management_token: str
    notification_sent: bool


class BookingWorkflow:
    """State machine driving one booking attempt at a time."""

    @staticmethod
    def _require_state(session: BookingSession, *allowed: SessionState) -> None:
        if session.state not in {state.value for state in allowed}:
            raise TokenInvalid(
                f"Booking attempt is {session.state}; start a new attempt",
                state=session.state,
            )

    @staticmethod
    def _abandon(db: Session, session: BookingSession, reason: str) -> None:
        session.state = SessionState.ABANDONED.value
        session.verification_jti = None
        SessionStore.save(db, session)
        logger.info(f"Booking attempt abandoned: {reason}")

    @staticmethod
    def start(db: Session, email: str, now: Optional[datetime] = None) -> BookingSession:
        """Begin a booking attempt for an email address."""
        session = SessionStore.create(
            db, normalize_email(email), PURPOSE_BOOKING, SessionState.STARTED.value, now=now
        )
        logger.info("Started booking attempt")
        return session

    @staticmethod
    def start_access_renewal(
        db: Session,
        booking_id: int,
        email: str,
        now: Optional[datetime] = None
    ) -> BookingSession:
        """
        Begin an attempt to obtain a new management token for a booking.

        Raises:
            NotFound: If no booking with that id belongs to the email
        """
        email = normalize_email(email)
        booking = db.query(Booking).filter(Booking.id == booking_id).first()
        if booking is None or normalize_email(booking.email) != email:
            # Same answer for unknown ids and foreign emails
            raise NotFound("Booking not found")
        return SessionStore.create(
            db, email, PURPOSE_MANAGE, SessionState.STARTED.value, booking_id=booking.id, now=now
        )

    @staticmethod
    def issue_code(
        db: Session,
        key: str,
        notifier: Notifier,
        now: Optional[datetime] = None
    ) -> BookingSession:
        """
        Started -> CodeIssued: send a fresh code, replacing any earlier one.

        Also used to resend a code, or to start over after the verification
        token expired.

        A failed delivery deletes the code and leaves the attempt in its
        previous state.

        Raises:
            SessionExpiredOrMissing: If the attempt is unknown or expired
            NotificationDeliveryError: If the code could not be delivered
        """
        session = SessionStore.get(db, key, now=now)
        BookingWorkflow._require_state(
            session, SessionState.STARTED, SessionState.CODE_ISSUED, SessionState.CODE_VERIFIED
        )

        _, code = OTPService.issue_code(db, session.email, session.purpose, now=now)
        try:
            NotificationService.send_verification_code(
                notifier, session.email, code, session.purpose, OTP_CODE_EXPIRE_MINUTES
            )
        except NotificationDeliveryError:
            logger.exception("Verification code delivery failed; discarding the code")
            OTPService.invalidate_code(db, session.email, session.purpose)
            raise

        session.state = SessionState.CODE_ISSUED.value
        session.verification_jti = None
        return SessionStore.save(db, session)

    @staticmethod
    def verify_code(
        db: Session,
        key: str,
        code: str,
        notifier: Notifier,
        now: Optional[datetime] = None
    ) -> VerificationResult:
        """
        CodeIssued -> CodeVerified (booking) or -> Confirmed (access renewal).

        Raises:
            TokenExpired: The code expired or was used; the attempt is abandoned
            InvalidCode: Wrong digits; abandoned once no attempts remain
        """
        if now is None:
            now = utc_now()
        session = SessionStore.get(db, key, now=now)
        BookingWorkflow._require_state(session, SessionState.CODE_ISSUED)

        try:
            OTPService.verify_code(db, session.email, session.purpose, code, now=now)
        except TokenExpired:
            BookingWorkflow._abandon(db, session, "code expired or already used")
            raise
        except InvalidCode as e:
            if e.context.get("remaining_attempts") == 0:
                BookingWorkflow._abandon(db, session, "too many wrong codes")
            raise

        if session.purpose == PURPOSE_MANAGE:
            return BookingWorkflow._renew_access(db, session, notifier, now)

        token, payload = jwt_service.create_verification_token(
            session.email, session.purpose, session.key, now=now
        )
        session.verification_jti = payload.jti
        session.state = SessionState.CODE_VERIFIED.value
        SessionStore.save(db, session)
        return VerificationResult(state=session.state, verification_token=token)

    @staticmethod
    def _renew_access(
        db: Session,
        session: BookingSession,
        notifier: Notifier,
        now: datetime
    ) -> VerificationResult:
        booking = db.query(Booking).filter(Booking.id == session.booking_id).first()
        if booking is None:
            BookingWorkflow._abandon(db, session, "booking disappeared before renewal")
            raise NotFound("Booking not found")

        token = BookingService.mint_management_token(db, booking, now=now)
        session.state = SessionState.CONFIRMED.value
        SessionStore.save(db, session)
        NotificationService.send_booking_update(notifier, booking, management_token=token)
        return VerificationResult(
            state=session.state, management_token=token, booking_id=booking.id
        )

    @staticmethod
    def reserve(
        db: Session,
        key: str,
        verification_token: str,
        candidate_start: datetime,
        booking_type_id: int,
        full_name: str,
        email: str,
        phone: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Booking:
        """
        CodeVerified -> SlotReserved: spend the verification token on one reservation.

        Raises:
            TokenExpired: The verification token expired
            TokenInvalid: Signature or claims do not match; the attempt is abandoned
            ConflictError: The slot is no longer bookable; the attempt stays verified
        """
        if now is None:
            now = utc_now()
        session = SessionStore.get(db, key, now=now)
        BookingWorkflow._require_state(session, SessionState.CODE_VERIFIED)

        try:
            payload = jwt_service.verify_verification_token(verification_token, now=now)
        except TokenInvalid:
            BookingWorkflow._abandon(db, session, "verification token rejected")
            raise

        request_email = normalize_email(email)
        if (
            payload.session_key != session.key
            or payload.jti != session.verification_jti
            or payload.scope != PURPOSE_BOOKING
            or normalize_email(payload.email) != session.email
            or request_email != session.email
        ):
            BookingWorkflow._abandon(db, session, "verification token claims mismatch")
            raise TokenInvalid("Verification token does not match this booking request")

        details = BookingDetails(
            full_name=full_name,
            email=request_email,
            phone=phone,
            status=BOOKING_STATUS_PENDING,
        )
        # A conflict propagates with the attempt still verified
        booking = BookingGuard.try_reserve(
            db, candidate_start, booking_type_id, details, enforce_availability=True, now=now
        )

        session.verification_jti = None
        session.booking_id = booking.id
        session.state = SessionState.SLOT_RESERVED.value
        SessionStore.save(db, session)
        return booking

    @staticmethod
    def confirm(
        db: Session,
        key: str,
        notifier: Notifier,
        now: Optional[datetime] = None
    ) -> ConfirmationResult:
        """
        SlotReserved -> Confirmed: mint the management token and notify.

        Irreversible; a failed confirmation message does not undo it.
        """
        if now is None:
            now = utc_now()
        session = SessionStore.get(db, key, now=now)
        BookingWorkflow._require_state(session, SessionState.SLOT_RESERVED)

        booking = db.query(Booking).filter(Booking.id == session.booking_id).first()
        if booking is None:
            BookingWorkflow._abandon(db, session, "reserved booking disappeared")
            raise NotFound("Reserved booking no longer exists")

        booking.status = BOOKING_STATUS_CONFIRMED
        token = BookingService.mint_management_token(db, booking, now=now)
        session.state = SessionState.CONFIRMED.value
        SessionStore.save(db, session)

        sent = NotificationService.send_booking_confirmation(notifier, booking, management_token=token)
        logger.info(f"Booking {booking.id} confirmed")
        return ConfirmationResult(booking=booking, management_token=token, notification_sent=sent)

    @staticmethod
    def cancel(db: Session, key: str, now: Optional[datetime] = None) -> BookingSession:
        """
        Abandon an attempt explicitly, releasing a reserved but unconfirmed slot.
        """
        session = SessionStore.get(db, key, now=now)
        BookingWorkflow._require_state(
            session,
            SessionState.STARTED, SessionState.CODE_ISSUED,
            SessionState.CODE_VERIFIED, SessionState.SLOT_RESERVED,
        )

        if session.state == SessionState.SLOT_RESERVED.value and session.booking_id is not None:
            db.query(Booking).filter(
                Booking.id == session.booking_id,
                Booking.status == BOOKING_STATUS_PENDING
            ).delete(synchronize_session=False)
            session.booking_id = None

        OTPService.invalidate_code(db, session.email, session.purpose)
        BookingWorkflow._abandon(db, session, "cancelled by customer")
        return session
