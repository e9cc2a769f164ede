"""
Shared type definitions for the booking calendar backend.

This module contains dataclasses and types that are used across multiple services.
"""

from shared_types.availability import Interval, SlotData
from shared_types.booking import BookingDetails

__all__ = ["Interval", "SlotData", "BookingDetails"]
