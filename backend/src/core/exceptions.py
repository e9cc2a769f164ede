"""
Domain errors raised by the scheduling core.

Services raise these instead of HTTP errors; the API layer maps them to
status codes in main.py. Every error carries enough information for the
client to recover (re-fetch slots, request a new code) without restarting
unrelated workflow steps.
"""

import enum
from typing import Any, Dict, Optional


class BookingError(Exception):
    """Base class for all scheduling errors."""

    error_type = "booking_error"

    def __init__(self, message: str = "", **context: Any):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"detail": self.message, "type": self.error_type}
        body.update(self.context)
        return body


class InvalidConfiguration(BookingError):
    """Malformed booking type or weekly availability data."""

    error_type = "invalid_configuration"


class InvalidExclusion(BookingError):
    """A single exclusion violates its date/time invariants."""

    error_type = "invalid_exclusion"

    def __init__(self, message: str = "", exclusion_id: Optional[int] = None, **context: Any):
        super().__init__(message, exclusion_id=exclusion_id, **context)
        self.exclusion_id = exclusion_id


class NotFound(BookingError):
    """An admin-managed record does not exist."""

    error_type = "not_found"


class ConflictReason(str, enum.Enum):
    SLOT_TAKEN = "slot_taken"
    EXCLUDED = "excluded"
    INVALID_BOOKING_TYPE = "invalid_booking_type"
    OUTSIDE_AVAILABILITY = "outside_availability"
    IN_PAST = "in_past"


class ConflictError(BookingError):
    """
    A reservation could not be committed.

    Reported once to the immediate caller; the core never retries.
    """

    error_type = "conflict"
    reason: ConflictReason = ConflictReason.SLOT_TAKEN

    def __init__(self, message: str = "", reason: Optional[ConflictReason] = None, **context: Any):
        if reason is not None:
            self.reason = reason
        super().__init__(message, reason=self.reason.value, **context)


class SlotTaken(ConflictError):
    reason = ConflictReason.SLOT_TAKEN


class SlotExcluded(ConflictError):
    reason = ConflictReason.EXCLUDED


class InvalidBookingType(ConflictError):
    reason = ConflictReason.INVALID_BOOKING_TYPE


class TokenExpired(BookingError):
    """Code or token is past its expiry or already used; a new one may be requested."""

    error_type = "token_expired"


class TokenInvalid(BookingError):
    """Signature or claim mismatch; terminal for the current attempt."""

    error_type = "token_invalid"


class InvalidCode(BookingError):
    """Wrong one-time code digits; retryable until the attempt limit."""

    error_type = "invalid_code"


class SessionExpiredOrMissing(BookingError):
    """The booking attempt was never started or has been swept."""

    error_type = "session_expired"


class NotificationDeliveryError(BookingError):
    """The notification collaborator failed to accept a message."""

    error_type = "notification_failed"
