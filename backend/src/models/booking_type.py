"""
Booking type model representing the services customers can book.

A booking type determines the length of any booking created against it.
Bookings copy the title and duration at creation time, so later edits to a
type never change existing bookings.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import String, Text, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base, UTCDateTime


class BookingType(Base):
    """Service definition with a fixed duration."""

    __tablename__ = "booking_types"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the booking type."""

    name: Mapped[str] = mapped_column(String(255))
    """Human-readable name, copied into Booking.title at creation."""

    duration_minutes: Mapped[int] = mapped_column()
    """Length of bookings of this type in minutes. Must be positive."""

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    """Service description shown to customers."""

    color: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    """Display color for the calendar UI."""

    is_deleted: Mapped[bool] = mapped_column(default=False)
    """Soft delete flag. Deleted types cannot be booked."""

    deleted_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    """Timestamp when the booking type was soft deleted (if applicable)."""

    created_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    bookings = relationship("Booking", back_populates="booking_type")

    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="check_positive_duration"),
    )

    def __repr__(self) -> str:
        return f"<BookingType(id={self.id}, name='{self.name}', duration={self.duration_minutes})>"
