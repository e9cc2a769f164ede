"""
Calendar lock model.

A single row whose version is bumped as the first statement of every booking
write. The bump takes a row lock on PostgreSQL and the database write lock on
SQLite, so overlap checks and inserts from concurrent writers run one after
another and always see each other's committed bookings.
"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base


class CalendarLock(Base):
    __tablename__ = "calendar_locks"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(50), unique=True)
    version: Mapped[int] = mapped_column(default=0)

    def __repr__(self) -> str:
        return f"<CalendarLock(id={self.id}, name='{self.name}', version={self.version})>"
