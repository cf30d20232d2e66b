"""Wall-clock access and timestamp normalization helpers."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Protocol


class Clock(Protocol):
    """Source of timezone-aware UTC instants."""

    def now(self) -> datetime:
        """Return the current instant in UTC."""


class SystemClock:
    """Clock backed by the host wall clock."""

    def now(self) -> datetime:
        return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime; naive values are assumed UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_timestamp(value: object) -> datetime | None:
    """Parse an ISO-8601 string (or pass through a datetime) into UTC.

    Returns ``None`` for values that are not timestamps.
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return ensure_utc(datetime.fromisoformat(value.strip()))
    except ValueError:
        return None


def format_timestamp(value: datetime) -> str:
    """Render one instant as an ISO-8601 UTC string with a ``Z`` suffix."""
    return ensure_utc(value).isoformat().replace("+00:00", "Z")
