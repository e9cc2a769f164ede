"""
Exclusion model representing admin-declared blackout periods.

Exclusions are stored as naive UTC calendar and time-of-day components and
combined into an interval at read time. They override the weekly window.
"""

from datetime import date as date_type, time, datetime
from typing import Optional
from sqlalchemy import Date, Time, Text, Index
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base, UTCDateTime


class Exclusion(Base):
    """
    Blackout interval during which nothing can be booked.

    Multiple and overlapping exclusions are permitted. Past exclusions stay
    valid but no longer affect any bookable slot.
    """

    __tablename__ = "exclusions"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the exclusion."""

    start_date: Mapped[date_type] = mapped_column(Date)
    """First UTC calendar date covered by the exclusion."""

    end_date: Mapped[Optional[date_type]] = mapped_column(Date, nullable=True)
    """Last UTC calendar date covered. Null means a single-day exclusion."""

    start_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    """UTC time-of-day on start_date. Null means from midnight."""

    end_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    """UTC time-of-day on the end date. Null means to the end of that day."""

    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    """Free-text reason shown to admins."""

    created_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    __table_args__ = (
        Index('idx_exclusions_dates', 'start_date', 'end_date'),
    )

    @property
    def last_date(self) -> date_type:
        """Last calendar date touched by the exclusion."""
        return self.end_date or self.start_date

    @property
    def is_all_day(self) -> bool:
        """Check if this exclusion covers whole days."""
        return self.start_time is None and self.end_time is None

    def __repr__(self) -> str:
        return (
            f"<Exclusion(id={self.id}, {self.start_date} {self.start_time} - "
            f"{self.end_date} {self.end_time})>"
        )
