"""
core/clock.py -- Time source shared by the token components.

Every component that compares against "now" takes a Clock in its constructor
and defaults to utcnow(). Tests pass a controllable clock instead of patching
datetime.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Return the current instant as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """Serialize an instant as fixed-width ISO 8601 in UTC.

    timespec="microseconds" keeps every value the same length so that string
    comparison in SQL matches chronological order. Naive datetimes are
    treated as UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_iso(value: str) -> datetime:
    """Parse an ISO 8601 string written by to_iso() back into an aware datetime."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
