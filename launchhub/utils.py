"""Utility functions for LaunchHub.

This module provides common helpers for datetime handling, calendar-day
boundaries, and slug/username generation.
"""

import random
import re
import unicodedata
from datetime import UTC, datetime, timedelta, tzinfo

from dateutil import parser as dateutil_parser  # type: ignore[import-untyped]

_SLUG_STRIP = re.compile(r"[^a-z0-9\s-]")
_SLUG_DASH = re.compile(r"[\s_-]+")
_USERNAME_STRIP = re.compile(r"[^a-zA-Z0-9]")


def parse_datetime(value: str | datetime | None) -> datetime | None:
    """Parse ISO8601 timestamp string into timezone-aware UTC datetime.

    Naive values are assumed to already be in UTC.

    Args:
        value: ISO8601 timestamp string, datetime object, or None

    Returns:
        Parsed timezone-aware datetime in UTC, or None if input is None

    Raises:
        ValueError: If timestamp format is invalid

    Example:
        >>> parse_datetime("2024-01-15T10:30:00Z").tzinfo
        datetime.timezone.utc
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    dt = dateutil_parser.isoparse(value)

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)

    return dt.astimezone(UTC)


def utc_now() -> datetime:
    """Get current UTC timestamp as timezone-aware datetime."""
    return datetime.now(UTC)


def format_iso(dt: datetime | None) -> str | None:
    """Format datetime as ISO8601 string with 'Z' suffix.

    Example:
        >>> format_iso(datetime(2024, 1, 15, 10, 30, tzinfo=UTC))
        '2024-01-15T10:30:00Z'
    """
    if dt is None:
        return None
    return parse_datetime(dt).isoformat().replace("+00:00", "Z")


def start_of_day(moment: datetime, tz: tzinfo = UTC) -> datetime:
    """Midnight of the calendar day containing ``moment`` in ``tz``, as UTC.

    Example:
        >>> start_of_day(datetime(2024, 3, 5, 17, 45, tzinfo=UTC))
        datetime.datetime(2024, 3, 5, 0, 0, tzinfo=datetime.timezone.utc)
    """
    local = parse_datetime(moment).astimezone(tz)
    midnight = datetime(local.year, local.month, local.day, tzinfo=tz)
    return midnight.astimezone(UTC)


def shift_days(day_start: datetime, days: int, tz: tzinfo = UTC) -> datetime:
    """Move a day boundary by whole calendar days in ``tz``.

    Calendar arithmetic happens on the local date so DST transitions yield
    the correct local midnight rather than a fixed 24h offset.
    """
    local = day_start.astimezone(tz)
    target = local.date() + timedelta(days=days)
    return datetime(target.year, target.month, target.day, tzinfo=tz).astimezone(UTC)


def slugify(value: str) -> str:
    """Turn a product name into a URL slug.

    Example:
        >>> slugify("Hello, World! 2.0")
        'hello-world-20'
    """
    normalized = (
        unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    )
    cleaned = _SLUG_STRIP.sub("", normalized.lower()).strip()
    return _SLUG_DASH.sub("-", cleaned).strip("-")


def username_from_email(email: str) -> str:
    """Derive a base username from the local part of an e-mail address.

    Example:
        >>> username_from_email("Jane.Doe+hunt@example.com")
        'janedoehunt'
    """
    return _USERNAME_STRIP.sub("", email.split("@")[0]).lower()


def with_random_suffix(base: str, rng: random.Random | None = None) -> str:
    """Append a 0-999 numeric suffix, used when a username is taken."""
    rng = rng or random
    return f"{base}{rng.randint(0, 999)}"
