"""
Notification collaborator for verification codes and booking lifecycle messages.

Delivery is delegated to a notifier: the webhook notifier posts each message
to NOTIFICATION_WEBHOOK_URL (a mail relay), the logging notifier only logs.
Code delivery failures propagate so the workflow can roll back; lifecycle
messages are best-effort.
"""

import logging
from enum import Enum
from typing import Any, Dict, Optional

import httpx

from core.config import ADMIN_EMAIL, FRONTEND_URL, NOTIFICATION_TIMEOUT_SECONDS, NOTIFICATION_WEBHOOK_URL
from core.exceptions import NotificationDeliveryError
from models import Booking

logger = logging.getLogger(__name__)


class NotificationKind(Enum):
    VERIFICATION_CODE = "verification_code"
    BOOKING_CONFIRMED = "booking_confirmed"
    BOOKING_UPDATED = "booking_updated"
    BOOKING_CANCELLED = "booking_cancelled"
    ADMIN_NEW_BOOKING = "admin_new_booking"


class Notifier:
    """Fire-and-forget sender of (recipient, kind, payload) messages."""

    def send(self, recipient: str, kind: NotificationKind, payload: Dict[str, Any]) -> None:
        """
        Raises:
            NotificationDeliveryError: If the message was not accepted
        """
        raise NotImplementedError


class LoggingNotifier(Notifier):
    """Notifier used when no delivery endpoint is configured."""

    def send(self, recipient: str, kind: NotificationKind, payload: Dict[str, Any]) -> None:
        logger.info(f"Notification {kind.value} for {recipient}: {sorted(payload.keys())}")


class WebhookNotifier(Notifier):
    """Posts each message as JSON to an HTTP endpoint."""

    def __init__(self, url: str, timeout: float = NOTIFICATION_TIMEOUT_SECONDS):
        self.url = url
        self.timeout = timeout

    def send(self, recipient: str, kind: NotificationKind, payload: Dict[str, Any]) -> None:
        try:
            response = httpx.post(
                self.url,
                headers={"Content-Type": "application/json"},
                json={
                    "recipient": recipient,
                    "kind": kind.value,
                    "payload": payload,
                },
                timeout=self.timeout
            )
            response.raise_for_status()
            logger.debug(f"Delivered {kind.value} notification to webhook")
        except httpx.HTTPStatusError as e:
            raise NotificationDeliveryError(
                f"Notification endpoint returned {e.response.status_code}",
                kind=kind.value,
            ) from e
        except httpx.HTTPError as e:
            raise NotificationDeliveryError(f"Notification endpoint unreachable: {e}", kind=kind.value) from e


_notifier: Optional[Notifier] = None


def get_notifier() -> Notifier:
    """Process-wide notifier; also used as a FastAPI dependency."""
    global _notifier
    if _notifier is None:
        if NOTIFICATION_WEBHOOK_URL:
            _notifier = WebhookNotifier(NOTIFICATION_WEBHOOK_URL)
        else:
            _notifier = LoggingNotifier()
    return _notifier


def management_link(token: str) -> str:
    return f"{FRONTEND_URL.rstrip('/')}/manage?token={token}"


def _booking_payload(booking: Booking) -> Dict[str, Any]:
    return {
        "booking_id": booking.id,
        "title": booking.title,
        "start": booking.start_at.isoformat(),
        "end": booking.end_at.isoformat(),
        "full_name": booking.full_name,
    }


class NotificationService:
    """Message composition on top of a notifier."""

    @staticmethod
    def send_verification_code(notifier: Notifier, email: str, code: str, purpose: str, expires_minutes: int) -> None:
        """
        Deliver a one-time code. Failures propagate.

        Raises:
            NotificationDeliveryError: If the code could not be delivered
        """
        notifier.send(email, NotificationKind.VERIFICATION_CODE, {
            "code": code,
            "purpose": purpose,
            "expires_minutes": expires_minutes,
        })
        logger.info(f"Sent {purpose} verification code")

    @staticmethod
    def _send_best_effort(notifier: Notifier, recipient: str, kind: NotificationKind, payload: Dict[str, Any]) -> bool:
        try:
            notifier.send(recipient, kind, payload)
            return True
        except NotificationDeliveryError as e:
            logger.exception(f"Failed to send {kind.value} notification: {e.message}")
            return False

    @staticmethod
    def send_booking_confirmation(notifier: Notifier, booking: Booking, management_token: Optional[str] = None) -> bool:
        """
        Confirm a booking to its customer, including a management link when available.

        Returns:
            True if the notifier accepted the message, False otherwise
        """
        payload = _booking_payload(booking)
        if management_token:
            payload["management_link"] = management_link(management_token)
        sent = NotificationService._send_best_effort(
            notifier, booking.email, NotificationKind.BOOKING_CONFIRMED, payload
        )
        if ADMIN_EMAIL:
            NotificationService._send_best_effort(
                notifier, ADMIN_EMAIL, NotificationKind.ADMIN_NEW_BOOKING, _booking_payload(booking)
            )
        return sent

    @staticmethod
    def send_booking_update(notifier: Notifier, booking: Booking, management_token: Optional[str] = None) -> bool:
        payload = _booking_payload(booking)
        if management_token:
            payload["management_link"] = management_link(management_token)
        return NotificationService._send_best_effort(
            notifier, booking.email, NotificationKind.BOOKING_UPDATED, payload
        )

    @staticmethod
    def send_booking_cancellation(notifier: Notifier, booking: Booking) -> bool:
        return NotificationService._send_best_effort(
            notifier, booking.email, NotificationKind.BOOKING_CANCELLED, _booking_payload(booking)
        )
