"""
Booking type service for booking type management and validation.

Edits never touch existing bookings: each booking already carries the title
and end time frozen from its type at creation.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from core.exceptions import InvalidConfiguration, NotFound
from models import BookingType
from utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


class BookingTypeService:
    """Service class for booking type operations."""

    @staticmethod
    def _validate(name: Optional[str], duration_minutes: Optional[int]) -> None:
        if name is not None and not name.strip():
            raise InvalidConfiguration("Booking type name is required")
        if duration_minutes is not None and duration_minutes <= 0:
            raise InvalidConfiguration(f"Booking type duration must be positive, got {duration_minutes}")

    @staticmethod
    def get_booking_type_by_id(
        db: Session,
        booking_type_id: int,
        include_deleted: bool = False
    ) -> BookingType:
        """
        Get a booking type by ID.

        Raises:
            NotFound: If the type does not exist, or is deleted and
                ``include_deleted`` is False
        """
        query = db.query(BookingType).filter(BookingType.id == booking_type_id)
        if not include_deleted:
            query = query.filter(BookingType.is_deleted == False)  # noqa: E712
        booking_type = query.first()
        if booking_type is None:
            raise NotFound(f"Booking type {booking_type_id} not found")
        return booking_type

    @staticmethod
    def list_booking_types(db: Session) -> List[BookingType]:
        """List all active (non-deleted) booking types."""
        return db.query(BookingType).filter(
            BookingType.is_deleted == False  # noqa: E712
        ).order_by(BookingType.name).all()

    @staticmethod
    def create_booking_type(
        db: Session,
        name: str,
        duration_minutes: int,
        description: Optional[str] = None,
        color: Optional[str] = None
    ) -> BookingType:
        BookingTypeService._validate(name, duration_minutes)
        booking_type = BookingType(
            name=name.strip(),
            duration_minutes=duration_minutes,
            description=description,
            color=color,
        )
        db.add(booking_type)
        db.commit()
        db.refresh(booking_type)
        logger.info(f"Created booking type {booking_type.id} ({booking_type.duration_minutes} min)")
        return booking_type

    @staticmethod
    def update_booking_type(
        db: Session,
        booking_type_id: int,
        name: Optional[str] = None,
        duration_minutes: Optional[int] = None,
        description: Optional[str] = None,
        color: Optional[str] = None
    ) -> BookingType:
        """
        Update a booking type. A new duration applies to future bookings only.
        """
        BookingTypeService._validate(name, duration_minutes)
        booking_type = BookingTypeService.get_booking_type_by_id(db, booking_type_id)

        if name is not None:
            booking_type.name = name.strip()
        if duration_minutes is not None:
            booking_type.duration_minutes = duration_minutes
        if description is not None:
            booking_type.description = description
        if color is not None:
            booking_type.color = color
        db.commit()
        db.refresh(booking_type)
        return booking_type

    @staticmethod
    def soft_delete_booking_type(db: Session, booking_type_id: int) -> BookingType:
        """
        Soft delete a booking type.

        Existing bookings keep their link; new reservations are rejected.
        """
        booking_type = BookingTypeService.get_booking_type_by_id(db, booking_type_id)
        booking_type.is_deleted = True
        booking_type.deleted_at = utc_now()
        db.commit()
        logger.info(f"Soft deleted booking type {booking_type_id}")
        return booking_type
