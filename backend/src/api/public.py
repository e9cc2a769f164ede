# pyright: reportMissingTypeStubs=false
"""
Public booking API endpoints.

Unauthenticated customers list booking types and slots, walk through the
code-gated booking workflow, and manage their booking through the
single-use link sent in the confirmation.
"""

import logging
from datetime import date as date_type, datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from auth.dependencies import get_management_token
from core.database import get_db
from services.availability_service import AvailabilityService
from services.booking_service import BookingService
from services.booking_type_service import BookingTypeService
from services.booking_workflow import BookingWorkflow
from services.notification_service import Notifier, get_notifier
from services.overlay_service import OverlayService
from utils.datetime_utils import ensure_utc, parse_date_string, utc_now
from utils.validators import validate_email, validate_full_name, validate_phone_optional
from api.responses import (
    AvailableSlotsResponse, BookingSessionResponse, BookingTypeListResponse, ManagedBookingResponse,
    MessageResponse, ReservationResponse, UnavailableIntervalsResponse, VerificationResponse,
    booking_response, booking_type_response, interval_response, slot_response,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ===== Request Models =====

class StartBookingRequest(BaseModel):
    email: str

    @field_validator('email')
    @classmethod
    def validate_email_field(cls, v: str) -> str:
        return validate_email(v)


class VerifyCodeRequest(BaseModel):
    code: str

    @field_validator('code')
    @classmethod
    def validate_code(cls, v: str) -> str:
        v = v.strip()
        if not v.isdigit():
            raise ValueError('Code must be numeric')
        return v


class ReserveSlotRequest(BaseModel):
    """Slot choice plus contact details, authorized by a verification token."""
    verification_token: str
    booking_type_id: int
    start: datetime
    full_name: str
    email: str
    phone: Optional[str] = None

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


class RenewAccessRequest(BaseModel):
    booking_id: int
    email: str

    @field_validator('email')
    @classmethod
    def validate_email_field(cls, v: str) -> str:
        return validate_email(v)


class RescheduleRequest(BaseModel):
    start: datetime


def _parse_date(value: str, field: str) -> date_type:
    try:
        return parse_date_string(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {field} (expected YYYY-MM-DD)"
        )


def _session_response(session) -> BookingSessionResponse:
    return BookingSessionResponse(
        session_key=session.key,
        state=session.state,
        expires_at=session.expires_at,
    )


# ===== Availability =====

@router.get("/booking-types", summary="List bookable booking types")
async def list_booking_types(db: Session = Depends(get_db)) -> BookingTypeListResponse:
    booking_types = BookingTypeService.list_booking_types(db)
    return BookingTypeListResponse(
        booking_types=[booking_type_response(bt) for bt in booking_types]
    )


@router.get("/slots", summary="Available slots for a date and booking type")
async def get_available_slots(
    date: str = Query(..., description="UTC date in YYYY-MM-DD format"),
    booking_type_id: int = Query(...),
    utc_offset_minutes: int = Query(0, description="Caller's offset east of UTC, for local labels"),
    db: Session = Depends(get_db)
) -> AvailableSlotsResponse:
    day = _parse_date(date, "date")
    slots = AvailabilityService.get_available_slots(
        db, day, booking_type_id, utc_offset_minutes=utc_offset_minutes
    )
    return AvailableSlotsResponse(
        date=day,
        booking_type_id=booking_type_id,
        slots=[slot_response(slot) for slot in slots],
    )


@router.get("/unavailable", summary="Unavailable intervals for calendar shading")
async def get_unavailable_intervals(
    start_date: str = Query(..., description="First UTC date (YYYY-MM-DD)"),
    end_date: str = Query(..., description="Last UTC date (YYYY-MM-DD), inclusive"),
    db: Session = Depends(get_db)
) -> UnavailableIntervalsResponse:
    first = _parse_date(start_date, "start_date")
    last = _parse_date(end_date, "end_date")
    intervals = OverlayService.get_unavailable_intervals(db, first, last)
    return UnavailableIntervalsResponse(
        start_date=first,
        end_date=last,
        intervals=[interval_response(i) for i in intervals],
    )


# ===== Booking workflow =====

@router.post("/bookings/start", status_code=status.HTTP_201_CREATED, summary="Start a booking attempt")
async def start_booking(
    request: StartBookingRequest,
    db: Session = Depends(get_db)
) -> BookingSessionResponse:
    session = BookingWorkflow.start(db, request.email)
    return _session_response(session)


@router.post("/bookings/{session_key}/code", summary="Send a verification code")
async def send_code(
    session_key: str,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier)
) -> BookingSessionResponse:
    session = BookingWorkflow.issue_code(db, session_key, notifier)
    return _session_response(session)


@router.post("/bookings/{session_key}/verify", summary="Verify the emailed code")
async def verify_code(
    session_key: str,
    request: VerifyCodeRequest,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier)
) -> VerificationResponse:
    result = BookingWorkflow.verify_code(db, session_key, request.code, notifier)
    return VerificationResponse(
        state=result.state,
        verification_token=result.verification_token,
        management_token=result.management_token,
        booking_id=result.booking_id,
    )


@router.post("/bookings/{session_key}/reserve", status_code=status.HTTP_201_CREATED, summary="Reserve and confirm a slot")
async def reserve_slot(
    session_key: str,
    request: ReserveSlotRequest,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier)
) -> ReservationResponse:
    # Reserve and confirm share one clock reading
    now = utc_now()
    BookingWorkflow.reserve(
        db,
        session_key,
        request.verification_token,
        ensure_utc(request.start),
        request.booking_type_id,
        full_name=request.full_name,
        email=request.email,
        phone=request.phone,
        now=now,
    )
    result = BookingWorkflow.confirm(db, session_key, notifier, now=now)
    return ReservationResponse(
        booking=booking_response(result.booking),
        management_token=result.management_token,
        notification_sent=result.notification_sent,
    )


@router.post("/bookings/{session_key}/cancel", summary="Abandon a booking attempt")
async def cancel_attempt(
    session_key: str,
    db: Session = Depends(get_db)
) -> BookingSessionResponse:
    session = BookingWorkflow.cancel(db, session_key)
    return _session_response(session)


# ===== Self-service management =====

@router.post("/manage/renew", status_code=status.HTTP_201_CREATED, summary="Start renewing a management link")
async def renew_access(
    request: RenewAccessRequest,
    db: Session = Depends(get_db)
) -> BookingSessionResponse:
    session = BookingWorkflow.start_access_renewal(db, request.booking_id, request.email)
    return _session_response(session)


@router.get("/manage/booking", summary="View a booking through its management link")
async def get_managed_booking(
    token: str = Depends(get_management_token),
    db: Session = Depends(get_db)
) -> ManagedBookingResponse:
    booking = BookingService.get_managed_booking(db, token)
    return ManagedBookingResponse(
        id=booking.id,
        title=booking.title,
        start=booking.start_at,
        end=booking.end_at,
        status=booking.status,
        token_expires_at=booking.management_token_expires_at,
    )


@router.put("/manage/booking", summary="Reschedule a booking through its management link")
async def reschedule_managed_booking(
    request: RescheduleRequest,
    token: str = Depends(get_management_token),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier)
) -> ManagedBookingResponse:
    booking = BookingService.reschedule_managed_booking(db, token, ensure_utc(request.start), notifier)
    return ManagedBookingResponse(
        id=booking.id,
        title=booking.title,
        start=booking.start_at,
        end=booking.end_at,
        status=booking.status,
        token_expires_at=None,
    )


@router.delete("/manage/booking", summary="Cancel a booking through its management link")
async def cancel_managed_booking(
    token: str = Depends(get_management_token),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier)
) -> MessageResponse:
    BookingService.cancel_managed_booking(db, token, notifier)
    return MessageResponse(message="Booking cancelled")
