"""
Tests for notification delivery and message composition.
"""

from unittest.mock import MagicMock, patch

import httpx
import pytest

from core.exceptions import NotificationDeliveryError
from models import Booking
from services.notification_service import (
    LoggingNotifier, NotificationKind, NotificationService, WebhookNotifier, management_link,
)
from tests.utils import MONDAY, FailingNotifier, FakeNotifier, at


def _booking() -> Booking:
    return Booking(
        id=3, title="Consultation", start_at=at(MONDAY, 10), end_at=at(MONDAY, 11),
        full_name="Ada Lovelace", email="ada@example.com", status="confirmed",
    )


class TestWebhookNotifier:

    def test_posts_json(self):
        response = MagicMock()
        with patch("services.notification_service.httpx.post", return_value=response) as mock_post:
            WebhookNotifier("https://relay.example.com/hook").send(
                "ada@example.com", NotificationKind.VERIFICATION_CODE, {"code": "123456"}
            )

        _, kwargs = mock_post.call_args
        assert kwargs["json"] == {
            "recipient": "ada@example.com",
            "kind": "verification_code",
            "payload": {"code": "123456"},
        }
        response.raise_for_status.assert_called_once()

    def test_error_status_is_delivery_error(self):
        request = httpx.Request("POST", "https://relay.example.com/hook")
        response = httpx.Response(503, request=request)
        with patch("services.notification_service.httpx.post", return_value=response):
            with pytest.raises(NotificationDeliveryError) as exc_info:
                WebhookNotifier("https://relay.example.com/hook").send(
                    "ada@example.com", NotificationKind.VERIFICATION_CODE, {"code": "123456"}
                )
        assert "503" in exc_info.value.message

    def test_unreachable_is_delivery_error(self):
        with patch("services.notification_service.httpx.post", side_effect=httpx.ConnectError("refused")):
            with pytest.raises(NotificationDeliveryError):
                WebhookNotifier("https://relay.example.com/hook").send(
                    "ada@example.com", NotificationKind.BOOKING_CONFIRMED, {}
                )


class TestNotificationService:

    def test_verification_code_failure_propagates(self):
        with pytest.raises(NotificationDeliveryError):
            NotificationService.send_verification_code(FailingNotifier(), "ada@example.com", "123456", "booking", 10)

    def test_lifecycle_messages_are_best_effort(self):
        notifier = FailingNotifier()
        assert NotificationService.send_booking_confirmation(notifier, _booking()) is False
        assert NotificationService.send_booking_cancellation(notifier, _booking()) is False
        assert notifier.attempts == 2

    def test_confirmation_carries_management_link(self):
        notifier = FakeNotifier()
        assert NotificationService.send_booking_confirmation(notifier, _booking(), management_token="tok")

        recipient, kind, payload = notifier.sent[0]
        assert recipient == "ada@example.com"
        assert kind == NotificationKind.BOOKING_CONFIRMED
        assert payload["management_link"] == management_link("tok")
        assert payload["start"] == at(MONDAY, 10).isoformat()

    def test_admin_copy_when_configured(self):
        notifier = FakeNotifier()
        with patch("services.notification_service.ADMIN_EMAIL", "owner@example.com"):
            NotificationService.send_booking_confirmation(notifier, _booking(), management_token="tok")

        copies = notifier.of_kind(NotificationKind.ADMIN_NEW_BOOKING)
        assert [c[0] for c in copies] == ["owner@example.com"]
        assert "management_link" not in copies[0][2]

    def test_logging_notifier_never_fails(self):
        LoggingNotifier().send("ada@example.com", NotificationKind.BOOKING_UPDATED, {"booking_id": 1})
