"""
Services package for shared business logic.

This package contains service classes that encapsulate business logic
shared across multiple API endpoints.
"""

from .time_window_service import TimeWindowService
from .availability_service import AvailabilityService
from .overlay_service import OverlayService
from .booking_guard import BookingGuard
from .booking_service import BookingService
from .booking_type_service import BookingTypeService
from .exclusion_service import ExclusionService
from .booking_workflow import BookingWorkflow

__all__ = [
    "TimeWindowService",
    "AvailabilityService",
    "OverlayService",
    "BookingGuard",
    "BookingService",
    "BookingTypeService",
    "ExclusionService",
    "BookingWorkflow",
]
