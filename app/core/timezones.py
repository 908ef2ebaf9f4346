"""Time zone helpers for scheduling."""

from datetime import UTC, datetime, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.core.exceptions import ValidationException


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def resolve_timezone(name: str | None, default: str) -> tzinfo:
    """
    Resolve an IANA zone name, falling back to the platform default.

    Args:
        name: Zone configured on the doctor profile, if any
        default: Platform default zone name

    Returns:
        tzinfo for local-time conversions
    """
    zone_name = name or default
    if zone_name.upper() == "UTC":
        return UTC
    try:
        return ZoneInfo(zone_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValidationException(f"Unknown time zone '{zone_name}'") from e
