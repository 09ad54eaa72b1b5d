"""
Live Activity Mirror.

Reflects timer state onto the platform live-activity surface and
publishes the activity's existence to ``rooms/{roomId}/liveActivity`` so
every device in the room shows the same countdown.
"""

from datetime import datetime
from typing import Any, Optional

from tips_core.constants import DEFAULT_TIMER_DURATION
from tips_core.interfaces.activity import LiveActivityInterface
from tips_core.interfaces.database import RealtimeDatabaseInterface, SubscriptionHandle
from tips_core.models.activity import LiveActivityState
from tips_core.utils.clock import Clock
from tips_core.utils.exceptions import ActivityError, RemoteError
from tips_core.utils.logging import get_logger

logger = get_logger(__name__)


def activity_path(room_id: str) -> str:
    return f"rooms/{room_id}/liveActivity"


class LiveActivityMirror:
    """
    Presentational mirror of the foreground timer.

    Every failure is logged and swallowed: the activity never affects
    timer state.

    Example:
        >>> mirror = LiveActivityMirror(surface, db)
        >>> await mirror.start("room_1", "Sam", timer.end_time, 900)
        >>> await mirror.end("room_1")
    """

    def __init__(
        self,
        surface: LiveActivityInterface,
        db: RealtimeDatabaseInterface,
        clock: Optional[Clock] = None,
    ):
        self.surface = surface
        self.db = db
        self.clock = clock or Clock()
        self._observer: Optional[SubscriptionHandle] = None
        self._observed_room: Optional[str] = None

    @property
    def observed_room_id(self) -> Optional[str]:
        return self._observed_room

    def _state(
        self,
        room_id: str,
        room_name: Optional[str],
        end_time: datetime,
        duration: float,
        is_active: bool = True,
    ) -> LiveActivityState:
        return LiveActivityState(
            room_id=room_id,
            room_name=room_name or "",
            end_time=end_time,
            is_active=is_active,
            total_duration=max(float(duration), 0.0),
            last_updated=int(self.clock.now().timestamp() * 1000),
        )

    async def _find(self, room_id: str) -> Optional[LiveActivityState]:
        for state in await self.surface.active():
            if state.room_id == room_id and state.is_active:
                return state
        return None

    async def start(
        self,
        room_id: str,
        room_name: Optional[str],
        end_time: datetime,
        duration: float,
    ) -> bool:
        """
        Show the countdown and publish it to the room.

        An activity already running for the room is updated in place
        instead of requesting a second one.

        Returns:
            True if an activity is showing the countdown
        """
        if not self.surface.enabled():
            logger.info("live_activity_disabled", room_id=room_id)
            return False

        state = self._state(room_id, room_name, end_time, duration)
        try:
            if await self._find(room_id) is not None:
                await self.surface.update(state)
                logger.debug("live_activity_restarted", room_id=room_id)
            else:
                activity_id = await self.surface.request(state)
                logger.info("live_activity_started", room_id=room_id, activity_id=activity_id)
        except ActivityError as e:
            logger.error("live_activity_start_failed", room_id=room_id, error=str(e))
            return False

        await self._publish(state)
        return True

    async def update_progress(
        self,
        room_id: str,
        end_time: datetime,
        total_duration: float,
        is_active: bool = True,
    ) -> bool:
        """Refresh the local activity; the backend record is not rewritten."""
        existing = await self._find(room_id)
        if existing is None:
            return False
        state = self._state(room_id, existing.room_name, end_time, total_duration, is_active)
        try:
            return await self.surface.update(state)
        except ActivityError as e:
            logger.error("live_activity_update_failed", room_id=room_id, error=str(e))
            return False

    async def mark_expired(self, room_id: str, total_duration: float = DEFAULT_TIMER_DURATION) -> bool:
        """Freeze the activity at zero (end time now, inactive) so it does not count up."""
        updated = await self.update_progress(room_id, self.clock.now(), total_duration, is_active=False)
        if updated:
            logger.info("live_activity_expired", room_id=room_id)
        return updated

    async def end(self, room_id: str) -> bool:
        """End the local activity and clear the room's backend record."""
        ended = await self.end_local(room_id)
        try:
            await self.db.remove(activity_path(room_id))
            logger.debug("live_activity_record_cleared", room_id=room_id)
        except RemoteError as e:
            logger.error("live_activity_clear_failed", room_id=room_id, error=str(e))
        return ended

    async def end_local(self, room_id: str) -> bool:
        """End this device's activity only."""
        existing = await self._find(room_id)
        if existing is None:
            return False
        state = self._state(room_id, existing.room_name, self.clock.now(), existing.total_duration, False)
        try:
            ended = await self.surface.end(state)
        except ActivityError as e:
            logger.error("live_activity_end_failed", room_id=room_id, error=str(e))
            return False
        if ended:
            logger.info("live_activity_ended", room_id=room_id)
        return ended

    async def observe(self, room_id: str) -> Optional[SubscriptionHandle]:
        """
        Follow the room's backend record, replacing any previous observer.

        An active, unexpired record starts a local activity (if none is
        running); anything else ends it.

        Returns:
            Subscription handle, or None if the subscription failed
        """
        self.stop_observing()
        try:
            handle = await self.db.subscribe(
                activity_path(room_id),
                lambda raw: self._on_record(room_id, raw),
            )
        except RemoteError as e:
            logger.error("live_activity_observe_failed", room_id=room_id, error=str(e))
            return None
        self._observer = handle
        self._observed_room = room_id
        return handle

    def stop_observing(self) -> None:
        if self._observer is not None:
            self._observer.cancel()
        self._observer = None
        self._observed_room = None

    async def _on_record(self, room_id: str, raw: Any) -> None:
        state = LiveActivityState.from_record(room_id, raw)
        if state is not None and state.is_active and state.end_time > self.clock.now():
            if await self._find(room_id) is not None:
                return
            if not self.surface.enabled():
                return
            try:
                await self.surface.request(state)
                logger.info("live_activity_joined", room_id=room_id)
            except ActivityError as e:
                logger.error("live_activity_join_failed", room_id=room_id, error=str(e))
        else:
            await self.end_local(room_id)

    async def _publish(self, state: LiveActivityState) -> None:
        try:
            await self.db.set(activity_path(state.room_id), state.to_record())
        except RemoteError as e:
            logger.error("live_activity_publish_failed", room_id=state.room_id, error=str(e))
