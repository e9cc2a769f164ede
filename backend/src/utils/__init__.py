"""
Utility modules for the booking calendar backend.

This package contains shared utility functions and helpers used across
the application, including datetime utilities and contact field validation.
"""

from utils.datetime_utils import ensure_utc, utc_now
from utils.validators import validate_email

__all__ = ['ensure_utc', 'utc_now', 'validate_email']
