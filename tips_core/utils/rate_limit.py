"""
Save rate limiter.

Drops persistence requests that arrive within a fixed window after the
last successful save.
"""

from datetime import datetime, timedelta
from typing import Optional

from tips_core.utils.clock import Clock


class SaveRateLimiter:
    """
    Token-style limiter for local timer saves.

    A token is available when no successful save has been recorded within
    ``interval_seconds``. Callers ask ``allow()`` before writing and call
    ``record()`` only after the write succeeded, so a failed write never
    consumes the window.

    Example:
        >>> limiter = SaveRateLimiter(interval_seconds=5.0)
        >>> if limiter.allow():
        ...     write()
        ...     limiter.record()
    """

    def __init__(self, interval_seconds: float = 5.0, clock: Optional[Clock] = None):
        if interval_seconds < 0:
            raise ValueError("interval_seconds must be >= 0")
        self.interval_seconds = interval_seconds
        self.clock = clock or Clock()
        self._last_success: Optional[datetime] = None

    @property
    def last_success(self) -> Optional[datetime]:
        return self._last_success

    def allow(self) -> bool:
        """Return True if a save may proceed now."""
        if self._last_success is None:
            return True
        elapsed = self.clock.now() - self._last_success
        return elapsed >= timedelta(seconds=self.interval_seconds)

    def record(self) -> None:
        """Mark a successful save at the current time."""
        self._last_success = self.clock.now()

    def reset(self) -> None:
        """Forget the last save so the next request is allowed."""
        self._last_success = None
