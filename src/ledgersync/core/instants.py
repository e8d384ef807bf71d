"""Timestamp helpers.

All instants handled by ledgersync are timezone-aware UTC datetimes.
Naive values coming from storage or user input are taken to be UTC.
"""

from __future__ import annotations

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


def parse_instant(value: datetime | str | None) -> datetime | None:
    """Parse an ISO-8601 string (or pass a datetime through) as aware UTC.

    Args:
        value: ISO string, datetime or None.

    Returns:
        Aware datetime in UTC, or None.

    Raises:
        ValueError: If the string is not ISO-8601.
    """
    if value is None:
        return None
    if isinstance(value, str):
        # fromisoformat accepts "Z" since 3.11
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def format_instant(value: datetime | None) -> str | None:
    """Format an instant as an ISO-8601 UTC string."""
    parsed = parse_instant(value)
    return parsed.isoformat() if parsed else None
