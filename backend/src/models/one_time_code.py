"""
One-time code model for email verification.

At most one live code exists per (email, purpose); issuing a new code
replaces the previous row. Codes are stored as bcrypt hashes and carry an
absolute expiry checked at the point of use.
"""

from typing import Optional
from datetime import datetime
from sqlalchemy import String, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base, UTCDateTime


class OneTimeCode(Base):
    """Single-use numeric code bound to an (email, purpose) pair."""

    __tablename__ = "one_time_codes"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String(255))
    purpose: Mapped[str] = mapped_column(String(50))
    code_hash: Mapped[str] = mapped_column(String(255))
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    used_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    attempts: Mapped[int] = mapped_column(default=0)
    created_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint('email', 'purpose', name='uq_one_time_codes_email_purpose'),
        Index('idx_one_time_codes_expires', 'expires_at'),
    )

    def is_live(self, now: datetime) -> bool:
        """Check if the code can still be consumed at ``now``."""
        return self.used_at is None and self.expires_at > now

    def mark_used(self, now: datetime) -> None:
        self.used_at = now

    def __repr__(self) -> str:
        return f"<OneTimeCode(id={self.id}, email='{self.email}', purpose='{self.purpose}')>"
