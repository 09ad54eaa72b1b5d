"""
Notification Center Interface - OS local notification scheduler contract.
"""

from abc import ABC, abstractmethod
from typing import Iterable, List

from tips_core.models.notification import ScheduledNotification


class NotificationCenterInterface(ABC):
    """
    Abstract interface for the OS local-notification scheduler.

    Example:
        >>> class UserNotificationCenter(NotificationCenterInterface):
        ...     async def add(self, request):
        ...         ...
    """

    @abstractmethod
    async def add(self, request: ScheduledNotification) -> None:
        """
        Schedule a one-shot notification.

        Adding a request whose identifier is already pending replaces it.

        Raises:
            NotificationError: If the scheduler rejects the request
        """
        pass

    @abstractmethod
    async def remove(self, identifiers: Iterable[str]) -> None:
        """
        Cancel pending requests by identifier.

        Unknown identifiers are ignored.
        """
        pass

    @abstractmethod
    async def pending(self) -> List[ScheduledNotification]:
        """
        List pending (not yet delivered) requests.

        Raises:
            NotificationError: If the scheduler cannot be queried
        """
        pass
