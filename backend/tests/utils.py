"""
Test utilities for booking calendar tests.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from core.exceptions import NotificationDeliveryError
from models import Booking, BookingType, Exclusion, User, WeeklyAvailability
from services.jwt_service import AdminTokenPayload, jwt_service
from services.notification_service import NotificationKind, Notifier

UTC = timezone.utc

# 2030-01-07 is a Monday
MONDAY = date(2030, 1, 7)
TUESDAY = MONDAY + timedelta(days=1)
SUNDAY = MONDAY - timedelta(days=1)


def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=UTC)


def at(day: date, hour: int, minute: int = 0) -> datetime:
    """UTC instant on ``day``."""
    return datetime.combine(day, time(hour, minute), tzinfo=UTC)


class FakeNotifier(Notifier):
    """Records every message instead of delivering it."""

    def __init__(self) -> None:
        self.sent: List[Tuple[str, NotificationKind, Dict[str, Any]]] = []

    def send(self, recipient: str, kind: NotificationKind, payload: Dict[str, Any]) -> None:
        self.sent.append((recipient, kind, payload))

    def of_kind(self, kind: NotificationKind) -> List[Tuple[str, NotificationKind, Dict[str, Any]]]:
        return [message for message in self.sent if message[1] == kind]

    def last_code(self, email: str) -> str:
        """Plaintext of the most recent code sent to ``email``."""
        for recipient, kind, payload in reversed(self.sent):
            if recipient == email and kind == NotificationKind.VERIFICATION_CODE:
                return payload["code"]
        raise AssertionError(f"No verification code sent to {email}")


class FailingNotifier(Notifier):
    """Rejects every message."""

    def __init__(self) -> None:
        self.attempts = 0

    def send(self, recipient: str, kind: NotificationKind, payload: Dict[str, Any]) -> None:
        self.attempts += 1
        raise NotificationDeliveryError("relay unavailable", kind=kind.value)


def weekly_record(
    day_of_week: int,
    start: time,
    end: time,
    enabled: bool = True
) -> WeeklyAvailability:
    """Unsaved weekly record for pure computations."""
    return WeeklyAvailability(
        day_of_week=day_of_week, start_time_utc=start, end_time_utc=end, enabled=enabled
    )


def weekly_schedule(
    start: time = time(9, 0),
    end: time = time(17, 0),
    enabled_days: Tuple[int, ...] = (0, 1, 2, 3, 4, 5, 6),
    overrides: Optional[Dict[int, Tuple[time, time]]] = None
) -> Dict[int, WeeklyAvailability]:
    """Unsaved seven-day schedule keyed by day of week."""
    overrides = overrides or {}
    schedule = {}
    for day in range(7):
        day_start, day_end = overrides.get(day, (start, end))
        schedule[day] = weekly_record(day, day_start, day_end, enabled=day in enabled_days)
    return schedule


def set_weekday(
    db: Session,
    day_of_week: int,
    start: time,
    end: time,
    enabled: bool = True
) -> WeeklyAvailability:
    record = db.query(WeeklyAvailability).filter(WeeklyAvailability.day_of_week == day_of_week).one()
    record.start_time_utc = start
    record.end_time_utc = end
    record.enabled = enabled
    db.commit()
    return record


def open_every_day(db: Session, start: time = time(9, 0), end: time = time(17, 0)) -> None:
    for day in range(7):
        set_weekday(db, day, start, end)


def create_booking_type(
    db: Session,
    name: str = "Consultation",
    duration_minutes: int = 60,
    is_deleted: bool = False
) -> BookingType:
    booking_type = BookingType(name=name, duration_minutes=duration_minutes, is_deleted=is_deleted)
    db.add(booking_type)
    db.commit()
    db.refresh(booking_type)
    return booking_type


def create_booking(
    db: Session,
    start: datetime,
    end: datetime,
    email: str = "existing@example.com",
    status: str = "confirmed",
    booking_type: Optional[BookingType] = None
) -> Booking:
    """Insert a booking directly, bypassing the guard."""
    booking = Booking(
        title=booking_type.name if booking_type else "Existing",
        start_at=start,
        end_at=end,
        full_name="Existing Customer",
        email=email,
        status=status,
        booking_type_id=booking_type.id if booking_type else None,
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    return booking


def create_exclusion(
    db: Session,
    start_date: date,
    end_date: Optional[date] = None,
    start_time: Optional[time] = None,
    end_time: Optional[time] = None,
    note: Optional[str] = None
) -> Exclusion:
    exclusion = Exclusion(
        start_date=start_date,
        end_date=end_date,
        start_time=start_time,
        end_time=end_time,
        note=note,
    )
    db.add(exclusion)
    db.commit()
    db.refresh(exclusion)
    return exclusion


def create_admin(db: Session, email: str = "admin@example.com", password: str = "correct-horse") -> User:
    user = User(email=email, role="admin", password_hash=jwt_service.hash_password(password))
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def admin_headers(user: User) -> Dict[str, str]:
    token = jwt_service.create_access_token(AdminTokenPayload(
        sub=str(user.id), email=user.email, role=user.role
    ))
    return {"Authorization": f"Bearer {token}"}
