"""
Contact field validation utilities.

Provides centralized email, phone and free-text cleaning for the request
models, so every entry point accepts the same formats.
"""

import re
from typing import Optional

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
# Country code, one space, then the subscriber number: "+44 2079460000"
PHONE_PATTERN = re.compile(r'^\+\d{1,3} [0-9]{7,15}$')
TAG_PATTERN = re.compile(r'<[^>]*>?')


def sanitize_text(value: str) -> str:
    """
    Strip HTML tags and surrounding whitespace from free text.

    Args:
        value: Raw user-supplied text

    Returns:
        Text with anything tag-like removed
    """
    return TAG_PATTERN.sub('', value).strip()


def validate_email(email: str) -> str:
    """
    Validate and normalise an email address.

    Returns:
        Lower-cased, trimmed address

    Raises:
        ValueError: If the address is empty or malformed
    """
    if not email or not email.strip():
        raise ValueError('Email is required')

    cleaned = email.strip().lower()
    if not EMAIL_PATTERN.match(cleaned):
        raise ValueError('Invalid email format')
    return cleaned


def validate_phone(phone: str) -> str:
    """
    Validate an international phone number in "+CC NNNNNNN" format.

    Raises:
        ValueError: If phone number is invalid
    """
    if not phone or not phone.strip():
        raise ValueError('Phone number is required')

    cleaned = phone.strip()
    if not PHONE_PATTERN.match(cleaned):
        raise ValueError('Phone number must be "+<country code> <7-15 digits>"')
    return cleaned


def validate_phone_optional(phone: Optional[str]) -> Optional[str]:
    """
    Validate an optional phone number.

    Returns:
        The validated number, or None if phone is None/empty
    """
    if phone is None or not phone.strip():
        return None
    return validate_phone(phone)


def validate_full_name(full_name: str) -> str:
    """
    Raises:
        ValueError: If the sanitised name is empty or too long
    """
    cleaned = sanitize_text(full_name)
    if not cleaned:
        raise ValueError('Full name is required')
    if len(cleaned) > 255:
        raise ValueError('Full name is too long')
    return cleaned
