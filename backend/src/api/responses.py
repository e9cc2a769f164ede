"""
Shared response models for API endpoints.

This module contains Pydantic response models that are shared across
multiple API endpoints to ensure consistency and reduce duplication.
"""

from datetime import datetime, date as date_type
from typing import List, Optional

from pydantic import BaseModel

from models import Booking, BookingType, Exclusion, WeeklyAvailability
from shared_types.availability import Interval, SlotData
from utils.datetime_utils import format_time


class MessageResponse(BaseModel):
    """Generic acknowledgement."""
    message: str


class BookingTypeResponse(BaseModel):
    """Response model for booking type."""
    id: int
    name: str
    duration_minutes: int
    description: Optional[str] = None
    color: Optional[str] = None


class BookingTypeListResponse(BaseModel):
    booking_types: List[BookingTypeResponse]


class AvailableSlotResponse(BaseModel):
    """Response model for one available slot."""
    start: datetime
    end: datetime
    minutes: int  # Minutes since midnight UTC of the requested date; >= 1440 for next-day slots
    start_time: str  # HH:MM UTC
    local_start_time: Optional[str] = None  # HH:MM at the caller's offset


class AvailableSlotsResponse(BaseModel):
    """Response model for available time slots."""
    date: date_type
    booking_type_id: int
    slots: List[AvailableSlotResponse]


class IntervalResponse(BaseModel):
    start: datetime
    end: datetime


class UnavailableIntervalsResponse(BaseModel):
    """Overlay intervals; may overlap each other."""
    start_date: date_type
    end_date: date_type
    intervals: List[IntervalResponse]


class BookingResponse(BaseModel):
    """Response model for booking information."""
    id: int
    title: str
    start: datetime
    end: datetime
    full_name: str
    email: str
    phone: Optional[str] = None
    status: str
    booking_type_id: Optional[int] = None
    user_id: Optional[int] = None
    created_at: Optional[datetime] = None


class BookingListResponse(BaseModel):
    bookings: List[BookingResponse]


class ManagedBookingResponse(BaseModel):
    """Booking as seen through a management link."""
    id: int
    title: str
    start: datetime
    end: datetime
    status: str
    token_expires_at: Optional[datetime] = None


class ExclusionResponse(BaseModel):
    """Response model for exclusion."""
    id: int
    start_date: date_type
    end_date: Optional[date_type] = None
    start_time: Optional[str] = None  # HH:MM UTC
    end_time: Optional[str] = None  # HH:MM UTC
    note: Optional[str] = None


class ExclusionListResponse(BaseModel):
    exclusions: List[ExclusionResponse]


class WeeklyAvailabilityResponse(BaseModel):
    """Response model for one weekday's window."""
    day_of_week: int
    day_name: str
    start_time_utc: str  # HH:MM
    end_time_utc: str  # HH:MM
    enabled: bool
    wraps_midnight: bool


class WeeklyAvailabilityListResponse(BaseModel):
    days: List[WeeklyAvailabilityResponse]


class BookingSessionResponse(BaseModel):
    """State of a booking attempt."""
    session_key: str
    state: str
    expires_at: datetime


class VerificationResponse(BaseModel):
    state: str
    verification_token: Optional[str] = None
    management_token: Optional[str] = None
    booking_id: Optional[int] = None


class ReservationResponse(BaseModel):
    """Confirmed self-service booking."""
    booking: BookingResponse
    management_token: str
    notification_sent: bool


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: int
    email: str


def booking_type_response(booking_type: BookingType) -> BookingTypeResponse:
    return BookingTypeResponse(
        id=booking_type.id,
        name=booking_type.name,
        duration_minutes=booking_type.duration_minutes,
        description=booking_type.description,
        color=booking_type.color,
    )


def slot_response(slot: SlotData) -> AvailableSlotResponse:
    return AvailableSlotResponse(
        start=slot.start,
        end=slot.end,
        minutes=slot.minutes,
        start_time=slot.start_time,
        local_start_time=slot.local_start_time,
    )


def interval_response(interval: Interval) -> IntervalResponse:
    return IntervalResponse(start=interval.start, end=interval.end)


def booking_response(booking: Booking) -> BookingResponse:
    return BookingResponse(
        id=booking.id,
        title=booking.title,
        start=booking.start_at,
        end=booking.end_at,
        full_name=booking.full_name,
        email=booking.email,
        phone=booking.phone,
        status=booking.status,
        booking_type_id=booking.booking_type_id,
        user_id=booking.user_id,
        created_at=booking.created_at,
    )


def exclusion_response(exclusion: Exclusion) -> ExclusionResponse:
    return ExclusionResponse(
        id=exclusion.id,
        start_date=exclusion.start_date,
        end_date=exclusion.end_date,
        start_time=format_time(exclusion.start_time) if exclusion.start_time is not None else None,
        end_time=format_time(exclusion.end_time) if exclusion.end_time is not None else None,
        note=exclusion.note,
    )


def weekly_availability_response(record: WeeklyAvailability) -> WeeklyAvailabilityResponse:
    return WeeklyAvailabilityResponse(
        day_of_week=record.day_of_week,
        day_name=record.day_name,
        start_time_utc=format_time(record.start_time_utc),
        end_time_utc=format_time(record.end_time_utc),
        enabled=record.enabled,
        wraps_midnight=record.wraps_midnight,
    )
