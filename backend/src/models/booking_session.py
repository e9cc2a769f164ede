"""
Booking session model: the expiring keyed store behind booking attempts.

Each row is a capability key with an absolute expiry. An expired row is
indistinguishable from a missing one, so the behavior survives process
restarts and multiple workers. The periodic sweep only reclaims storage.
"""

from typing import Optional
from datetime import datetime
from sqlalchemy import String, Index
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base, UTCDateTime


class BookingSession(Base):
    """State of one booking attempt, keyed by an unguessable token."""

    __tablename__ = "booking_sessions"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    """Random URL-safe attempt identifier handed to the client."""

    email: Mapped[str] = mapped_column(String(255))
    purpose: Mapped[str] = mapped_column(String(50))
    state: Mapped[str] = mapped_column(String(30))

    booking_id: Mapped[Optional[int]] = mapped_column(nullable=True)
    """Booking reserved by this attempt, or the booking being managed."""

    verification_jti: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    """Id of the outstanding verification token; cleared once it is spent."""

    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    created_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    __table_args__ = (
        Index('idx_booking_sessions_created', 'created_at'),
        Index('idx_booking_sessions_email_purpose', 'email', 'purpose'),
    )

    def is_live(self, now: datetime) -> bool:
        return self.expires_at > now

    def __repr__(self) -> str:
        return f"<BookingSession(email='{self.email}', purpose='{self.purpose}', state='{self.state}')>"
