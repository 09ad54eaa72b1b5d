"""
Exception hierarchy for tips-core.

Backends wrap platform failures in one of these so the engine can tell a
transient I/O problem (``RemoteError``, ``StorageError``) from a caller
mistake (``ValidationError``, ``PermissionDeniedError``).
"""

from typing import Any, Dict, Optional


class TipsError(Exception):
    """
    Root of every error raised by tips-core.

    Attributes:
        message: Human-readable summary
        details: Structured context (paths, ids) for logs
        cause: Underlying exception, when wrapping one
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = dict(details or {})
        self.cause = cause

    def __str__(self) -> str:
        if not self.details:
            return self.message
        context = ", ".join(f"{key}={value!r}" for key, value in self.details.items())
        return f"{self.message} ({context})"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, details={self.details!r})"


class ConfigError(TipsError):
    """Configuration file or environment could not be turned into a ``TipsConfig``."""


class StorageError(TipsError):
    """
    Device-local persistence failed (timer state file or key-value store).

    Example:
        >>> raise StorageError("Failed to write timer state", details={"path": "timer_state.json"})
    """


class RemoteError(TipsError):
    """
    A realtime database read, write or subscription failed.

    The engine logs these and carries on with whatever it already knows.
    """


class NotificationError(TipsError):
    """The OS notification center rejected a request."""


class ActivityError(TipsError):
    """The live activity surface rejected a request."""


class ValidationError(TipsError):
    """
    Caller input was rejected before any side effect.

    Example:
        >>> raise ValidationError("room_id cannot be empty")
    """


class PermissionDeniedError(TipsError):
    """A privileged write (such as a duration override) by a non-super-admin."""


class CorruptRecordError(StorageError):
    """A stored record exists but cannot be decoded; callers remove it."""
