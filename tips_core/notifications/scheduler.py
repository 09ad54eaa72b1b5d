"""
Notification Scheduler.

Schedules one local notification per room member who enabled timer
notifications for the room, and cancels them by structured key.
"""

import asyncio
from typing import Any, Iterable, List, Optional, Set

from tips_core.constants import MIN_SCHEDULE_DELAY
from tips_core.interfaces.notifier import NotificationCenterInterface
from tips_core.models.config import NotificationConfig
from tips_core.models.notification import NotificationKey, ScheduledNotification
from tips_core.models.timer import TreatmentTimer
from tips_core.storage.remote import RoomDirectory
from tips_core.utils.async_utils import gather_with_concurrency, spawn
from tips_core.utils.clock import Clock
from tips_core.utils.exceptions import NotificationError, RemoteError
from tips_core.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_PARTICIPANT_NAME = "TIPs App"


def thread_identifier(timer_id: str) -> str:
    return f"treatment-timer-thread-{timer_id}"


def fanout_key(timer_id: str, room_id: str) -> str:
    """Best-effort id returned when scheduling is not awaited."""
    return f"{timer_id}_room_{room_id}"


def notification_title(participant_name: str) -> str:
    return f"{participant_name}: Time for next treatment food"


def notification_body(duration: float) -> str:
    minutes = max(int(round(duration / 60.0)), 1)
    return f"Your {minutes} minute treatment food timer has ended."


class NotificationScheduler:
    """
    Per-user timer notifications.

    Features:
    - Preference-gated fan-out over room members
    - Awaited (exact ids) or fire-and-forget (best-effort key) fan-out
    - Cancellation by metadata match, identifier prefix as fallback
    - One user's scheduling failure never affects the others

    Example:
        >>> scheduler = NotificationScheduler(center, RoomDirectory(db))
        >>> ids = await scheduler.schedule_for_timer(timer, "room_1", "Sam", 900)
        >>> await scheduler.cancel_for_timer(timer.id, "room_1")
    """

    def __init__(
        self,
        center: NotificationCenterInterface,
        directory: RoomDirectory,
        config: Optional[NotificationConfig] = None,
        clock: Optional[Clock] = None,
        min_delay: float = MIN_SCHEDULE_DELAY,
    ):
        """
        Initialize scheduler.

        Args:
            center: OS notification scheduler
            directory: Room membership and preference reads
            config: Fan-out configuration
            clock: Time source stamped on requests
            min_delay: Smallest delay handed to the OS scheduler
        """
        self.center = center
        self.directory = directory
        self.config = config or NotificationConfig()
        self.clock = clock or Clock()
        self.min_delay = min_delay
        self._background: Set["asyncio.Task[Any]"] = set()

    async def schedule_for_timer(
        self,
        timer: TreatmentTimer,
        room_id: str,
        participant_name: Optional[str],
        duration: float,
    ) -> List[str]:
        """
        Schedule the timer's notifications for every opted-in room member.

        Args:
            timer: Timer the notifications belong to
            room_id: Room whose members are notified
            participant_name: Label used in the title
            duration: Seconds until delivery (clamped to the minimum delay)

        Returns:
            Identifiers scheduled, or ``["{timerId}_room_{roomId}"]`` when
            fan-out is not awaited
        """
        name = participant_name or DEFAULT_PARTICIPANT_NAME
        delay = max(float(duration), float(self.min_delay))

        if not self.config.await_fanout:
            spawn(self._fanout(timer.id, room_id, name, delay), self._background)
            return [fanout_key(timer.id, room_id)]

        return await self._fanout(timer.id, room_id, name, delay)

    async def _fanout(self, timer_id: str, room_id: str, participant_name: str, delay: float) -> List[str]:
        try:
            members = await self.directory.members(room_id)
        except RemoteError as e:
            logger.error("notification_members_read_failed", room_id=room_id, timer_id=timer_id, error=str(e))
            return []

        if not members:
            logger.info("notification_no_members", room_id=room_id)
            return []

        results = await gather_with_concurrency(
            self.config.max_concurrency,
            *(self._schedule_user(timer_id, room_id, user_id, participant_name, delay) for user_id in members),
        )
        identifiers = [identifier for identifier in results if identifier]
        logger.info(
            "notifications_scheduled",
            room_id=room_id,
            timer_id=timer_id,
            count=len(identifiers),
            delay=delay,
        )
        return identifiers

    async def _schedule_user(
        self,
        timer_id: str,
        room_id: str,
        user_id: str,
        participant_name: str,
        delay: float,
    ) -> Optional[str]:
        if not await self.directory.timer_enabled(user_id, room_id):
            logger.debug("notification_disabled_for_user", user_id=user_id, room_id=room_id)
            return None

        key = NotificationKey(timer_id=timer_id, room_id=room_id, user_id=user_id)
        request = ScheduledNotification(
            identifier=key.identifier,
            title=notification_title(participant_name),
            body=notification_body(delay),
            delay_seconds=delay,
            thread_identifier=thread_identifier(timer_id),
            metadata=key.to_metadata(participant_name),
            scheduled_at=self.clock.now(),
        )
        try:
            await self.center.add(request)
        except NotificationError as e:
            logger.error("notification_schedule_failed", identifier=key.identifier, error=str(e))
            return None

        logger.debug("notification_scheduled", identifier=key.identifier, user_id=user_id, delay=delay)
        return key.identifier

    async def cancel_for_timer(self, timer_id: str, room_id: str) -> List[str]:
        """
        Cancel every pending notification of a timer, for all users.

        Returns:
            Identifiers cancelled (empty if none were pending)
        """
        try:
            pending = await self.center.pending()
        except NotificationError as e:
            logger.error("notification_pending_read_failed", timer_id=timer_id, error=str(e))
            return []

        identifiers = [request.identifier for request in pending if request.belongs_to(timer_id, room_id)]
        if not identifiers:
            logger.debug("notifications_none_pending", timer_id=timer_id, room_id=room_id)
            return []
        if not await self._remove(identifiers):
            return []
        logger.info("notifications_cancelled", timer_id=timer_id, room_id=room_id, count=len(identifiers))
        return identifiers

    async def cancel_identifiers(self, identifiers: Iterable[str]) -> None:
        """Cancel pending requests by stored identifier."""
        identifiers = [identifier for identifier in identifiers if identifier]
        if identifiers and await self._remove(identifiers):
            logger.debug("notifications_removed", count=len(identifiers))

    async def _remove(self, identifiers: List[str]) -> bool:
        try:
            await self.center.remove(identifiers)
        except NotificationError as e:
            logger.error("notification_remove_failed", identifiers=identifiers, error=str(e))
            return False
        return True

    async def has_pending(self, timer_id: str, room_id: Optional[str] = None) -> bool:
        """True if any notification for the timer is still pending."""
        try:
            pending = await self.center.pending()
        except NotificationError as e:
            logger.error("notification_pending_read_failed", timer_id=timer_id, error=str(e))
            return False

        for request in pending:
            if room_id is not None:
                if request.belongs_to(timer_id, room_id):
                    return True
            elif request.identifier.startswith(timer_id):
                return True
        return False

    async def drain(self) -> None:
        """Wait for fire-and-forget fan-outs still in flight."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
