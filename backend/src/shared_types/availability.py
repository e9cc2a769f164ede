"""
Shared types for availability-related functionality.

This module contains shared data classes and types used across the slot
resolver, the unavailability overlay and the booking guard to ensure they
all reason about time the same way.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional


@dataclass(frozen=True)
class Interval:
    """
    Half-open [start, end) range of UTC instants.

    An interval ending exactly where another starts does not overlap it.
    """
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"Interval end {self.end} is before start {self.start}")

    @property
    def is_empty(self) -> bool:
        return self.end == self.start

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def overlaps(self, other: "Interval") -> bool:
        """Open-on-end overlap: a.start < b.end and b.start < a.end."""
        return self.start < other.end and other.start < self.end

    def contains(self, other: "Interval") -> bool:
        return self.start <= other.start and other.end <= self.end

    def clip(self, bounds: "Interval") -> Optional["Interval"]:
        """Intersection with ``bounds``, or None when they do not overlap."""
        start = max(self.start, bounds.start)
        end = min(self.end, bounds.end)
        if start >= end:
            return None
        return Interval(start, end)

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary format with ISO 8601 instants."""
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
        }


@dataclass
class SlotData:
    """
    Represents an available time slot.

    ``minutes`` counts from midnight UTC of the requested date and exceeds
    1440 for slots of a window that wrapped into the following day.
    """
    start: datetime
    end: datetime
    minutes: int
    start_time: str  # Format: "HH:MM" (UTC)
    local_start_time: Optional[str] = None  # Format: "HH:MM" in the caller's offset

    def to_dict(self) -> dict[str, str | int | None]:
        """Convert to dictionary format."""
        result: dict[str, str | int | None] = {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "minutes": self.minutes,
            "start_time": self.start_time,
        }
        if self.local_start_time is not None:
            result["local_start_time"] = self.local_start_time
        return result
