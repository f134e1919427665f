"""Datetime conversion utilities."""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes and normalise aware ones to UTC.

    SQLite drops tzinfo on round-trip, so every value read back from the
    database goes through here before it is compared.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def datetime_to_iso(value: datetime | None) -> str | None:
    """Convert a datetime to an ISO-8601 string, or None."""
    if value is None:
        return None
    return ensure_utc(value).isoformat()


def datetime_from_iso(value: str | None) -> datetime | None:
    """Convert an ISO-8601 string to a UTC datetime, or None.

    Accepts a trailing ``Z`` and date-only strings (``2024-01-01``),
    both of which browser clients send.
    """
    if not value:
        return None
    return ensure_utc(datetime.fromisoformat(value))
