"""Day-of-week numbering.

The scheduling core uses ISO numbering only (Monday=1 .. Sunday=7). Clients
may send or request the JavaScript convention (Sunday=0 .. Saturday=6); the
API layer converts with the helpers below and nothing else does.
"""

from enum import Enum

from app.core.exceptions import ValidationException

ISO_DAYS = range(1, 8)


class DayNumbering(str, Enum):
    """Day numbering convention used by a client."""

    ISO = "iso"
    SUNDAY_ZERO = "sunday_zero"


def iso_from_sunday_zero(day: int) -> int:
    """Convert Sunday=0..Saturday=6 to ISO Monday=1..Sunday=7."""
    if day < 0 or day > 6:
        raise ValidationException(f"day_of_week must be between 0 and 6, got {day}")
    return 7 if day == 0 else day


def sunday_zero_from_iso(day: int) -> int:
    """Convert ISO Monday=1..Sunday=7 to Sunday=0..Saturday=6."""
    validate_iso_day(day)
    return 0 if day == 7 else day


def validate_iso_day(day: int) -> int:
    """Reject anything outside ISO 1..7."""
    if day not in ISO_DAYS:
        raise ValidationException(f"day_of_week must be ISO format (1-7), got {day}")
    return day


def to_iso(day: int, numbering: DayNumbering) -> int:
    """Translate an incoming day number to ISO."""
    if numbering == DayNumbering.SUNDAY_ZERO:
        return iso_from_sunday_zero(day)
    return validate_iso_day(day)


def from_iso(day: int, numbering: DayNumbering) -> int:
    """Translate an ISO day number for an outgoing response."""
    if numbering == DayNumbering.SUNDAY_ZERO:
        return sunday_zero_from_iso(day)
    return day
