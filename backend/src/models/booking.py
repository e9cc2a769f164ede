"""
Booking model representing a confirmed, non-overlapping reservation.

No two bookings may have overlapping [start_at, end_at) intervals. Every
booking occupies its interval regardless of status. The title and end time
are frozen from the booking type when the booking is created.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import String, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import BOOKING_STATUS_CONFIRMED
from core.database import Base, UTCDateTime


class Booking(Base):
    """
    Reservation of a half-open UTC interval.

    Created only through BookingGuard, which checks and inserts inside one
    serialised transaction.
    """

    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the booking."""

    title: Mapped[str] = mapped_column(String(255))
    """Copied from the booking type name at creation time."""

    start_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    """Start instant (UTC, inclusive)."""

    end_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    """End instant (UTC, exclusive) = start + booking type duration at creation."""

    full_name: Mapped[str] = mapped_column(String(255))
    email: Mapped[str] = mapped_column(String(255), index=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    status: Mapped[str] = mapped_column(String(50), default=BOOKING_STATUS_CONFIRMED)
    """Current status. Valid values: 'pending', 'confirmed'."""

    user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    """Owner link, set by email match at creation or by an admin."""

    booking_type_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("booking_types.id", ondelete="SET NULL"), nullable=True
    )
    """Type the booking was created from. Informational only; duration is already frozen."""

    management_token_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    """SHA-256 of the live single-use management token, if any."""

    management_token_expires_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    created_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    # Relationships
    user = relationship("User", back_populates="bookings")
    booking_type = relationship("BookingType", back_populates="bookings")

    __table_args__ = (
        CheckConstraint("end_at > start_at", name="check_booking_positive_interval"),
        Index('idx_bookings_start_end', 'start_at', 'end_at'),
    )

    @property
    def duration_minutes(self) -> int:
        """Frozen length of the booking in minutes."""
        return int((self.end_at - self.start_at).total_seconds() // 60)

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, title='{self.title}', {self.start_at} - {self.end_at}, status={self.status})>"
