"""
Weekly availability model for the recurring bookable window.

One record per day of week (Monday first). Times are UTC wall-clock values;
a window whose end is at or before its start wraps past midnight into the
following day. Records are only ever disabled, never deleted.
"""

from datetime import time, datetime
from typing import Optional
from sqlalchemy import Time, Boolean, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from core.constants import DAY_NAMES
from core.database import Base, UTCDateTime


class WeeklyAvailability(Base):
    """
    Bookable window for one day of the week.

    The model supports:
    - Exactly one window per weekday (day_of_week is the primary key)
    - Cross-midnight windows (end_time_utc <= start_time_utc)
    - Disabling a day without losing its configured hours
    """

    __tablename__ = "weekly_availability"

    day_of_week: Mapped[int] = mapped_column(primary_key=True, autoincrement=False)
    """Day of the week (0=Monday, 1=Tuesday, ..., 6=Sunday)."""

    start_time_utc: Mapped[time] = mapped_column(Time)
    """Window start as a UTC time-of-day (minute resolution)."""

    end_time_utc: Mapped[time] = mapped_column(Time)
    """Window end as a UTC time-of-day. At or before start means the window wraps."""

    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    """Whether any booking is permitted on this weekday."""

    created_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    __table_args__ = (
        CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="check_valid_day_of_week"),
    )

    @property
    def day_name(self) -> str:
        """Get the day name for display."""
        return DAY_NAMES[self.day_of_week]

    @property
    def wraps_midnight(self) -> bool:
        """True when the window continues into the following day."""
        return self.end_time_utc <= self.start_time_utc

    def __repr__(self) -> str:
        return (
            f"<WeeklyAvailability(day={self.day_name}, {self.start_time_utc}-{self.end_time_utc}, "
            f"enabled={self.enabled})>"
        )
