"""
Input validation utilities for API inputs.
"""

import re
from typing import Any, Optional


def parse_room_id(value: Any) -> Optional[int]:
    """
    Parse a room id from a query string or JSON value.

    Returns:
        Positive integer room id, or None if the value is not one
    """
    if isinstance(value, bool):
        return None
    try:
        room_id = int(value)
    except (TypeError, ValueError):
        return None
    return room_id if room_id > 0 else None


def validate_email(email: str) -> bool:
    """Basic email address format check."""
    if not email or not isinstance(email, str):
        return False

    pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
    return bool(re.match(pattern, email))


def validate_phone(phone: str) -> bool:
    """
    Validate phone number format.
    Accepts international format with optional + prefix; spaces, dashes and
    parentheses are ignored.
    """
    if not phone or not isinstance(phone, str):
        return False

    cleaned = re.sub(r"[\s\-\(\)]", "", phone)
    return bool(re.match(r"^\+?[1-9]\d{6,14}$", cleaned))


def sanitize_text(text: str, max_length: Optional[int] = None) -> str:
    """
    Sanitize free text such as booking notes and block reasons.

    Args:
        text: Input text
        max_length: Optional maximum length

    Returns:
        Sanitized text
    """
    if not text:
        return ""

    # Remove control characters except newlines and tabs
    sanitized = re.sub(r'[\x00-\x08\x0B-\x0C\x0E-\x1F\x7F]', '', str(text))
    sanitized = sanitized.strip()

    if max_length and len(sanitized) > max_length:
        sanitized = sanitized[:max_length]

    return sanitized
