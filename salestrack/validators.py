"""
Input validation for analytics queries.

All validators raise ValidationError on invalid input.
"""

from datetime import date, datetime
from typing import Optional, Union

from salestrack.exceptions import ValidationError
from salestrack.models import DATE_FORMAT, Shift

# Maximum allowed values
MAX_LIMIT = 500
MAX_WINDOW_DAYS = 366
MAX_WINDOW_MONTHS = 60


def validate_period_date(
    value: Union[str, date, None],
    field: str = "date",
    required: bool = True,
) -> Optional[date]:
    """
    Validate and parse a period date (DD-MM-YYYY).

    Args:
        value: Date string or date object
        field: Field name for error messages
        required: If False, an empty value returns None

    Returns:
        Parsed date object, or None when optional and empty

    Raises:
        ValidationError: If date is missing, invalid or in wrong format
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    if not value:
        if required:
            raise ValidationError(field, "Date is required", value)
        return None

    if not isinstance(value, str):
        raise ValidationError(field, "Must be a string", value)

    try:
        return datetime.strptime(value.strip(), DATE_FORMAT).date()
    except ValueError:
        raise ValidationError(
            field,
            "Invalid date format. Expected DD-MM-YYYY",
            value
        )


def validate_shift(value: Union[str, Shift, None], field: str = "shift") -> Shift:
    """
    Validate a shift label (case-insensitive).

    Raises:
        ValidationError: If shift is missing or unknown
    """
    if isinstance(value, Shift):
        return value

    shift = Shift.parse(value) if isinstance(value, str) else None
    if shift is None:
        allowed = ", ".join(s.value for s in Shift)
        raise ValidationError(field, f"Must be one of: {allowed}", value)
    return shift


def validate_limit(
    value: Optional[int],
    field: str = "limit",
    default: int = 20,
    max_value: int = MAX_LIMIT
) -> int:
    """
    Validate a ranking limit.

    Raises:
        ValidationError: If limit is not a positive integer or exceeds max_value
    """
    if value is None:
        return default

    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(field, "Must be an integer", value)

    if value < 1:
        raise ValidationError(field, "Must be at least 1", value)

    if value > max_value:
        raise ValidationError(field, f"Cannot exceed {max_value}", value)

    return value


def validate_window(value: Optional[int], field: str, default: int, max_value: int) -> int:
    """Validate a trend window length (days or months)."""
    return validate_limit(value, field=field, default=default, max_value=max_value)
