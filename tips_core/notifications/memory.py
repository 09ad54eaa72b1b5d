"""
In-memory notification center.
"""

from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Set

from tips_core.interfaces.notifier import NotificationCenterInterface
from tips_core.models.notification import ScheduledNotification
from tips_core.utils.clock import ensure_utc
from tips_core.utils.exceptions import NotificationError
from tips_core.utils.logging import get_logger

logger = get_logger(__name__)


class InMemoryNotificationCenter(NotificationCenterInterface):
    """
    Dict-backed stand-in for the OS local-notification scheduler.

    Requests are delivered by ``fire_due``, which moves every request whose
    trigger time has passed into ``delivered``.

    Example:
        >>> center = InMemoryNotificationCenter()
        >>> await center.add(request)
        >>> center.fire_due(clock.advance(900))
    """

    def __init__(self):
        self._pending: Dict[str, ScheduledNotification] = {}
        self.delivered: List[ScheduledNotification] = []
        self.rejected_users: Set[str] = set()

    async def add(self, request: ScheduledNotification) -> None:
        key = request.key
        if key is not None and key.user_id in self.rejected_users:
            raise NotificationError(
                "Notification rejected",
                details={"identifier": request.identifier, "user_id": key.user_id},
            )
        self._pending[request.identifier] = request

    async def remove(self, identifiers: Iterable[str]) -> None:
        for identifier in identifiers:
            self._pending.pop(identifier, None)

    async def pending(self) -> List[ScheduledNotification]:
        return list(self._pending.values())

    def get(self, identifier: str) -> Optional[ScheduledNotification]:
        return self._pending.get(identifier)

    @property
    def pending_identifiers(self) -> List[str]:
        return sorted(self._pending.keys())

    def fire_due(self, now: datetime) -> List[ScheduledNotification]:
        """
        Deliver every request due at ``now``.

        Returns:
            Requests delivered by this call
        """
        now = ensure_utc(now)
        due = [
            request
            for request in self._pending.values()
            if ensure_utc(request.scheduled_at) + timedelta(seconds=request.delay_seconds) <= now
        ]
        for request in due:
            del self._pending[request.identifier]
            self.delivered.append(request)
            logger.debug("notification_delivered", identifier=request.identifier)
        return due
