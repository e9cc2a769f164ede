# pyright: reportMissingTypeStubs=false
"""
Admin API endpoints.

Bearer-authenticated management of bookings, booking types, exclusions and
the weekly availability schedule.
"""

import logging
from datetime import date as date_type, datetime, time
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from auth.dependencies import UserContext, require_admin
from core.constants import BOOKING_STATUS_CONFIRMED, MAX_NOTE_LENGTH, MAX_TITLE_LENGTH
from core.database import get_db
from services.availability_service import AvailabilityService
from services.booking_service import BookingService
from services.booking_type_service import BookingTypeService
from services.exclusion_service import ExclusionService
from services.notification_service import Notifier, get_notifier
from shared_types.booking import BookingDetails
from utils.datetime_utils import ensure_utc, parse_time_string
from utils.validators import sanitize_text, validate_email, validate_full_name, validate_phone_optional
from api.responses import (
    BookingListResponse, BookingResponse, BookingTypeListResponse, BookingTypeResponse,
    ExclusionListResponse, ExclusionResponse, MessageResponse, WeeklyAvailabilityListResponse,
    WeeklyAvailabilityResponse, booking_response, booking_type_response, exclusion_response,
    weekly_availability_response,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _parse_time_field(v: Union[str, time, None]) -> Optional[time]:
    if v is None or isinstance(v, time):
        return v
    return parse_time_string(v)


def _clean_title(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = sanitize_text(v)
    if not v:
        raise ValueError('Title cannot be empty')
    if len(v) > MAX_TITLE_LENGTH:
        raise ValueError(f'Title must be at most {MAX_TITLE_LENGTH} characters')
    return v


# ===== Request Models =====

class BookingCreateRequest(BaseModel):
    booking_type_id: int
    start: datetime
    full_name: str
    email: str
    phone: Optional[str] = None
    status: str = BOOKING_STATUS_CONFIRMED
    title: Optional[str] = None

    @field_validator('full_name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        return validate_full_name(v)

    @field_validator('email')
    @classmethod
    def validate_email_field(cls, v: str) -> str:
        return validate_email(v)

    @field_validator('phone')
    @classmethod
    def validate_phone_field(cls, v: Optional[str]) -> Optional[str]:
        return validate_phone_optional(v)

    @field_validator('title')
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        return _clean_title(v)


class BookingUpdateRequest(BaseModel):
    """Partial update; omitted fields are left unchanged."""
    title: Optional[str] = None
    start: Optional[datetime] = None
    status: Optional[str] = None
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    @field_validator('title')
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        return _clean_title(v)

    @field_validator('full_name')
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        return validate_full_name(v) if v is not None else None

    @field_validator('email')
    @classmethod
    def validate_email_field(cls, v: Optional[str]) -> Optional[str]:
        return validate_email(v) if v is not None else None

    @field_validator('phone')
    @classmethod
    def validate_phone_field(cls, v: Optional[str]) -> Optional[str]:
        return validate_phone_optional(v)


class BookingTypeRequest(BaseModel):
    name: str
    duration_minutes: int
    description: Optional[str] = None
    color: Optional[str] = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        return sanitize_text(v)


class BookingTypeUpdateRequest(BaseModel):
    name: Optional[str] = None
    duration_minutes: Optional[int] = None
    description: Optional[str] = None
    color: Optional[str] = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        return sanitize_text(v) if v is not None else None


class ExclusionRequest(BaseModel):
    """Times are HH:MM UTC; omit them for whole days."""
    start_date: date_type
    end_date: Optional[date_type] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    note: Optional[str] = None

    @field_validator('start_time', 'end_time', mode='before')
    @classmethod
    def validate_times(cls, v: Union[str, time, None]) -> Optional[time]:
        return _parse_time_field(v)

    @field_validator('note')
    @classmethod
    def validate_note(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = sanitize_text(v)
        if len(v) > MAX_NOTE_LENGTH:
            raise ValueError(f'Note must be at most {MAX_NOTE_LENGTH} characters')
        return v


class WeeklyAvailabilityRequest(BaseModel):
    """One weekday's window; end at or before start wraps past midnight."""
    day_of_week: int
    start_time_utc: time
    end_time_utc: time
    enabled: bool = True

    @field_validator('start_time_utc', 'end_time_utc', mode='before')
    @classmethod
    def validate_times(cls, v: Union[str, time]) -> Optional[time]:
        return _parse_time_field(v)


class WeeklyAvailabilityUpdateRequest(BaseModel):
    days: List[WeeklyAvailabilityRequest]


# ===== Bookings =====

@router.get("/bookings", summary="List bookings")
async def list_bookings(
    start: Optional[datetime] = Query(None, description="Only bookings ending after this instant"),
    end: Optional[datetime] = Query(None, description="Only bookings starting before this instant"),
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> BookingListResponse:
    bookings = BookingService.list_bookings(db, start=start, end=end)
    return BookingListResponse(bookings=[booking_response(b) for b in bookings])


@router.get("/bookings/{booking_id}", summary="Get a booking")
async def get_booking(
    booking_id: int,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> BookingResponse:
    return booking_response(BookingService.get_booking(db, booking_id))


@router.post("/bookings", status_code=status.HTTP_201_CREATED, summary="Create a booking without verification")
async def create_booking(
    request: BookingCreateRequest,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier)
) -> BookingResponse:
    details = BookingDetails(
        full_name=request.full_name,
        email=request.email,
        phone=request.phone,
        status=request.status,
        title=request.title,
    )
    booking = BookingService.create_booking(
        db, request.booking_type_id, ensure_utc(request.start), details, notifier
    )
    logger.info(f"Admin {current_user.user_id} created booking {booking.id}")
    return booking_response(booking)


@router.put("/bookings/{booking_id}", summary="Update a booking")
async def update_booking(
    booking_id: int,
    request: BookingUpdateRequest,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier)
) -> BookingResponse:
    booking = BookingService.update_booking(
        db,
        booking_id,
        notifier,
        title=request.title,
        start=ensure_utc(request.start),
        status=request.status,
        full_name=request.full_name,
        email=request.email,
        phone=request.phone,
    )
    return booking_response(booking)


@router.delete("/bookings/{booking_id}", summary="Delete a booking")
async def delete_booking(
    booking_id: int,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier)
) -> MessageResponse:
    BookingService.delete_booking(db, booking_id, notifier)
    return MessageResponse(message="Booking deleted")


# ===== Booking types =====

@router.get("/booking-types", summary="List booking types")
async def list_booking_types(
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> BookingTypeListResponse:
    booking_types = BookingTypeService.list_booking_types(db)
    return BookingTypeListResponse(booking_types=[booking_type_response(bt) for bt in booking_types])


@router.post("/booking-types", status_code=status.HTTP_201_CREATED, summary="Create a booking type")
async def create_booking_type(
    request: BookingTypeRequest,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> BookingTypeResponse:
    booking_type = BookingTypeService.create_booking_type(
        db, request.name, request.duration_minutes, request.description, request.color
    )
    return booking_type_response(booking_type)


@router.put("/booking-types/{booking_type_id}", summary="Update a booking type")
async def update_booking_type(
    booking_type_id: int,
    request: BookingTypeUpdateRequest,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> BookingTypeResponse:
    booking_type = BookingTypeService.update_booking_type(
        db,
        booking_type_id,
        name=request.name,
        duration_minutes=request.duration_minutes,
        description=request.description,
        color=request.color,
    )
    return booking_type_response(booking_type)


@router.delete("/booking-types/{booking_type_id}", summary="Delete a booking type")
async def delete_booking_type(
    booking_type_id: int,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> MessageResponse:
    BookingTypeService.soft_delete_booking_type(db, booking_type_id)
    return MessageResponse(message="Booking type deleted")


# ===== Exclusions =====

@router.get("/exclusions", summary="List exclusions")
async def list_exclusions(
    start_date: Optional[date_type] = Query(None),
    end_date: Optional[date_type] = Query(None),
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> ExclusionListResponse:
    exclusions = ExclusionService.list_exclusions(db, start_date=start_date, end_date=end_date)
    return ExclusionListResponse(exclusions=[exclusion_response(e) for e in exclusions])


@router.post("/exclusions", status_code=status.HTTP_201_CREATED, summary="Create an exclusion")
async def create_exclusion(
    request: ExclusionRequest,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> ExclusionResponse:
    exclusion = ExclusionService.create_exclusion(
        db,
        start_date=request.start_date,
        end_date=request.end_date,
        start_time=request.start_time,
        end_time=request.end_time,
        note=request.note,
    )
    return exclusion_response(exclusion)


@router.put("/exclusions/{exclusion_id}", summary="Replace an exclusion")
async def update_exclusion(
    exclusion_id: int,
    request: ExclusionRequest,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> ExclusionResponse:
    exclusion = ExclusionService.update_exclusion(
        db,
        exclusion_id,
        start_date=request.start_date,
        end_date=request.end_date,
        start_time=request.start_time,
        end_time=request.end_time,
        note=request.note,
    )
    return exclusion_response(exclusion)


@router.delete("/exclusions/{exclusion_id}", summary="Delete an exclusion")
async def delete_exclusion(
    exclusion_id: int,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> MessageResponse:
    ExclusionService.delete_exclusion(db, exclusion_id)
    return MessageResponse(message="Exclusion deleted")


# ===== Weekly availability =====

@router.get("/availability", summary="Weekly availability")
async def get_weekly_availability(
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> WeeklyAvailabilityListResponse:
    records = AvailabilityService.get_weekly_availability(db)
    return WeeklyAvailabilityListResponse(days=[weekly_availability_response(r) for r in records])


@router.put("/availability", summary="Update several weekdays")
async def update_weekly_availability(
    request: WeeklyAvailabilityUpdateRequest,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> WeeklyAvailabilityListResponse:
    records = AvailabilityService.update_weekly_schedule(
        db, [day.model_dump() for day in request.days]
    )
    return WeeklyAvailabilityListResponse(days=[weekly_availability_response(r) for r in records])


@router.put("/availability/{day_of_week}", summary="Update one weekday")
async def update_weekday_availability(
    day_of_week: int,
    request: WeeklyAvailabilityRequest,
    current_user: UserContext = Depends(require_admin),
    db: Session = Depends(get_db)
) -> WeeklyAvailabilityResponse:
    record = AvailabilityService.update_weekly_availability(
        db, day_of_week, request.start_time_utc, request.end_time_utc, request.enabled
    )
    return weekly_availability_response(record)
