# Package initialization
# Import all models to ensure relationships are properly established
from .user import User
from .weekly_availability import WeeklyAvailability
from .exclusion import Exclusion
from .booking_type import BookingType
from .booking import Booking
from .one_time_code import OneTimeCode
from .booking_session import BookingSession
from .calendar_lock import CalendarLock

__all__ = [
    "User",
    "WeeklyAvailability",
    "Exclusion",
    "BookingType",
    "Booking",
    "OneTimeCode",
    "BookingSession",
    "CalendarLock",
]
