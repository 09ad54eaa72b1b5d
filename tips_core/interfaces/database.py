"""
Realtime Database Interface - shared key-path store contract.

Defines the contract for the cloud realtime database every device in a
room reads and writes.
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional, Union

ChangeCallback = Callable[[Any], Union[None, Awaitable[None]]]


class SubscriptionHandle:
    """
    Handle returned by ``subscribe``.

    Cancelling is idempotent.

    Example:
        >>> handle = await db.subscribe("rooms/r1/treatmentTimer", on_change)
        >>> handle.cancel()
    """

    def __init__(self, path: str, unsubscribe: Callable[[], None]):
        self.path = path
        self._unsubscribe: Optional[Callable[[], None]] = unsubscribe

    @property
    def active(self) -> bool:
        return self._unsubscribe is not None

    def cancel(self) -> None:
        if self._unsubscribe is None:
            return
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        unsubscribe()

    def __repr__(self) -> str:
        return f"SubscriptionHandle(path='{self.path}', active={self.active})"


class RealtimeDatabaseInterface(ABC):
    """
    Abstract interface for a realtime key-path database.

    Paths are ``/``-separated (``rooms/{roomId}/treatmentTimer``). Values
    are JSON-compatible (dicts, lists, strings, numbers, bools). Writing
    ``None`` is equivalent to ``remove``.

    Example:
        >>> class FirebaseDatabase(RealtimeDatabaseInterface):
        ...     async def get(self, path):
        ...         ...
    """

    @abstractmethod
    async def get(self, path: str) -> Any:
        """
        Single-shot read.

        Returns:
            Value at path or None if absent

        Raises:
            RemoteError: If the read fails
        """
        pass

    @abstractmethod
    async def set(self, path: str, value: Any) -> None:
        """
        Write (replace) the value at path.

        Raises:
            RemoteError: If the write fails
        """
        pass

    @abstractmethod
    async def remove(self, path: str) -> None:
        """
        Delete the value at path. Deleting an absent path is a no-op.

        Raises:
            RemoteError: If the delete fails
        """
        pass

    @abstractmethod
    async def subscribe(self, path: str, callback: ChangeCallback) -> SubscriptionHandle:
        """
        Watch a path.

        The callback fires once with the current value, then on every write
        at, above, or below the path, including this client's own writes.

        Args:
            path: Path to watch
            callback: Called with the new value (or None); may be a coroutine function

        Returns:
            Handle to cancel the subscription

        Raises:
            RemoteError: If the subscription cannot be established
        """
        pass
