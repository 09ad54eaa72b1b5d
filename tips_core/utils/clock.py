"""
Clock abstraction.

All timer arithmetic goes through a clock so that expiry and debounce
windows can be driven deterministically.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Union


class Clock:
    """Wall clock returning timezone-aware UTC datetimes."""

    def now(self) -> datetime:
        """Current time (UTC, tz-aware)."""
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """
    Manually advanced clock.

    Example:
        >>> clock = FixedClock(datetime(2024, 1, 1, tzinfo=timezone.utc))
        >>> clock.advance(900)
    """

    def __init__(self, start: Optional[datetime] = None):
        self._now = ensure_utc(start) if start else datetime.now(timezone.utc).replace(microsecond=0)

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime) -> None:
        self._now = ensure_utc(value)

    def advance(self, seconds: Union[int, float]) -> datetime:
        self._now = self._now + timedelta(seconds=seconds)
        return self._now


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_iso8601(value: datetime) -> str:
    """
    Format a datetime the way every device in a room expects it.

    Whole seconds with a ``Z`` suffix; fractional seconds are not accepted
    by the mobile clients' default ISO-8601 parser.
    """
    return ensure_utc(value).strftime("%Y-%m-%dT%H:%M:%SZ")
