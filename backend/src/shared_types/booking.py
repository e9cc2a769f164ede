"""
Shared types for booking creation.
"""

from dataclasses import dataclass
from typing import Optional

from core.constants import BOOKING_STATUS_CONFIRMED


@dataclass
class BookingDetails:
    """
    Contact and ownership details attached to a new booking.

    The interval and title come from the booking type; everything the
    caller supplies lives here.
    """
    full_name: str
    email: str
    phone: Optional[str] = None
    status: str = BOOKING_STATUS_CONFIRMED
    title: Optional[str] = None  # Defaults to the booking type name
    user_id: Optional[int] = None  # Defaults to the account matching the email
