"""
Input validation functions for forecast requests.

All validators raise ValidationError on invalid input.
"""

from typing import Any, Optional

from core.exceptions import ValidationError

MAX_ID_LENGTH = 128

# Location values meaning "every location"
ALL_LOCATIONS = {"all", "*"}


def validate_organization_id(value: Any, field: str = "organizationId") -> str:
    """
    Validate a required organization ID.

    Returns:
        The stripped ID

    Raises:
        ValidationError: If missing, blank, not a string, or too long
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(field, "organizationId required")

    if not isinstance(value, str):
        raise ValidationError(field, "Must be a string", value)

    value = value.strip()
    if len(value) > MAX_ID_LENGTH:
        raise ValidationError(field, f"Must be at most {MAX_ID_LENGTH} characters", len(value))

    return value


def validate_location_id(value: Any, field: str = "locationId") -> Optional[str]:
    """
    Validate an optional location filter.

    Returns:
        The stripped ID, or None for missing/blank/"all"

    Raises:
        ValidationError: If not a string or too long
    """
    if value is None:
        return None

    if not isinstance(value, str):
        raise ValidationError(field, "Must be a string", value)

    value = value.strip()
    if not value or value.lower() in ALL_LOCATIONS:
        return None

    if len(value) > MAX_ID_LENGTH:
        raise ValidationError(field, f"Must be at most {MAX_ID_LENGTH} characters", len(value))

    return value
