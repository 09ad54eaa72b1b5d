"""
Remote mirrors over the realtime database.

- RemoteTimerMirror: the shared timer record of each room
- RoomSettingsMirror: the room-wide duration override
- RoomDirectory: room membership and per-user timer preferences
"""

import inspect
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from tips_core.interfaces.database import RealtimeDatabaseInterface, SubscriptionHandle
from tips_core.models.timer import TreatmentTimer, TreatmentTimerOverride
from tips_core.utils.exceptions import PermissionDeniedError, RemoteError
from tips_core.utils.logging import get_logger
from tips_core.utils.validation import validate_room_id

logger = get_logger(__name__)

TimerCallback = Callable[[Optional[TreatmentTimer]], Union[None, Awaitable[None]]]
OverrideCallback = Callable[[TreatmentTimerOverride], Union[None, Awaitable[None]]]


def timer_path(room_id: str) -> str:
    return f"rooms/{room_id}/treatmentTimer"


def override_path(room_id: str) -> str:
    return f"rooms/{room_id}/room_settings/treatment_timer_override"


def members_path(room_id: str) -> str:
    return f"rooms/{room_id}/users"


def preference_path(user_id: str, room_id: str) -> str:
    return f"users/{user_id}/roomSettings/{room_id}/treatmentFoodTimerEnabled"


async def _dispatch(callback: Callable[..., Any], value: Any) -> None:
    result = callback(value)
    if inspect.isawaitable(result):
        await result


class RemoteTimerMirror:
    """
    Shared per-room timer record at ``rooms/{roomId}/treatmentTimer``.

    Reads return None for a missing or malformed record. Collaborator
    failures surface as ``RemoteError``; callers decide whether to log.

    Example:
        >>> mirror = RemoteTimerMirror(db)
        >>> await mirror.set("room_1", timer)
        >>> await mirror.watch("room_1", on_timer_changed)
    """

    def __init__(self, db: RealtimeDatabaseInterface):
        self.db = db
        self._watch: Optional[SubscriptionHandle] = None
        self._watched_room: Optional[str] = None

    @property
    def watched_room_id(self) -> Optional[str]:
        return self._watched_room

    async def get(self, room_id: str) -> Optional[TreatmentTimer]:
        """
        Point read of a room's timer.

        Raises:
            RemoteError: If the read fails
        """
        validate_room_id(room_id)
        raw = await self.db.get(timer_path(room_id))
        return self._parse(room_id, raw)

    async def fetch(self, room_id: str) -> Optional[TreatmentTimer]:
        """Single-shot read; same as ``get``."""
        return await self.get(room_id)

    async def set(self, room_id: str, timer: Optional[TreatmentTimer]) -> None:
        """
        Write the room's timer, or delete it when ``timer`` is None.

        Raises:
            RemoteError: If the write fails
        """
        validate_room_id(room_id)
        if timer is None:
            await self.db.remove(timer_path(room_id))
            logger.debug("remote_timer_deleted", room_id=room_id)
        else:
            await self.db.set(timer_path(room_id), timer.to_record())
            logger.debug("remote_timer_written", room_id=room_id, timer_id=timer.id)

    async def subscribe(self, room_id: str, on_change: TimerCallback) -> SubscriptionHandle:
        """
        Observe a room's timer.

        ``on_change`` fires with the current value, then on every write,
        including this device's own.
        """
        validate_room_id(room_id)

        async def handle(raw: Any) -> None:
            await _dispatch(on_change, self._parse(room_id, raw))

        return await self.db.subscribe(timer_path(room_id), handle)

    async def watch(self, room_id: str, on_change: TimerCallback) -> SubscriptionHandle:
        """
        Subscribe to ``room_id``, replacing any previous watch.

        Only one watch is active at a time; the old handle is cancelled
        before the new subscription is attached.
        """
        self.unwatch()
        handle = await self.subscribe(room_id, on_change)
        self._watch = handle
        self._watched_room = room_id
        logger.info("remote_timer_watching", room_id=room_id)
        return handle

    def unwatch(self) -> None:
        if self._watch is not None:
            self._watch.cancel()
            logger.debug("remote_timer_unwatched", room_id=self._watched_room)
        self._watch = None
        self._watched_room = None

    @staticmethod
    def _parse(room_id: str, raw: Any) -> Optional[TreatmentTimer]:
        if raw is None:
            return None
        timer = TreatmentTimer.from_record(raw)
        if timer is None:
            logger.warning("remote_timer_malformed", room_id=room_id)
        return timer


class RoomSettingsMirror:
    """
    Room-wide duration override.

    Missing or malformed records read as the default override (disabled,
    900 s). Only super admins may write.

    Example:
        >>> settings = RoomSettingsMirror(db)
        >>> await settings.update_override("room_1", True, 60, actor_is_super_admin=True)
    """

    def __init__(self, db: RealtimeDatabaseInterface):
        self.db = db

    async def get_override(self, room_id: str) -> TreatmentTimerOverride:
        validate_room_id(room_id)
        raw = await self.db.get(override_path(room_id))
        return TreatmentTimerOverride.from_record(raw) or TreatmentTimerOverride()

    async def update_override(
        self,
        room_id: str,
        enabled: bool,
        duration_seconds: int = 900,
        actor_is_super_admin: bool = False,
    ) -> TreatmentTimerOverride:
        """
        Write the room's override.

        Args:
            room_id: Room to configure
            enabled: Whether the override applies
            duration_seconds: Override duration (coerced to at least 1)
            actor_is_super_admin: Whether the caller holds super-admin rights

        Returns:
            The override as written

        Raises:
            PermissionDeniedError: If the actor is not a super admin
            RemoteError: If the write fails
        """
        validate_room_id(room_id)
        if not actor_is_super_admin:
            logger.warning("override_update_denied", room_id=room_id)
            raise PermissionDeniedError(
                "Super admin access required to change the timer override",
                details={"room_id": room_id},
            )

        override = TreatmentTimerOverride(enabled=enabled, duration_seconds=duration_seconds)
        await self.db.set(override_path(room_id), override.to_record())
        logger.info(
            "override_updated",
            room_id=room_id,
            enabled=override.enabled,
            duration_seconds=override.duration_seconds,
        )
        return override

    async def observe(self, room_id: str, on_change: OverrideCallback) -> SubscriptionHandle:
        """Observe the override; missing or malformed values arrive as the default."""
        validate_room_id(room_id)

        async def handle(raw: Any) -> None:
            override = TreatmentTimerOverride.from_record(raw) or TreatmentTimerOverride()
            await _dispatch(on_change, override)

        return await self.db.subscribe(override_path(room_id), handle)


class RoomDirectory:
    """
    Room membership and per-user timer notification preferences.

    Example:
        >>> directory = RoomDirectory(db)
        >>> await directory.members("room_1")
        ['user_a', 'user_b']
    """

    def __init__(self, db: RealtimeDatabaseInterface):
        self.db = db

    async def members(self, room_id: str) -> List[str]:
        """
        User ids of the room's members.

        Raises:
            RemoteError: If the read fails
        """
        raw = await self.db.get(members_path(room_id))
        if not isinstance(raw, dict):
            return []
        return [str(user_id) for user_id in raw.keys()]

    async def timer_enabled(self, user_id: str, room_id: str) -> bool:
        """
        Whether the user wants timer notifications for the room.

        Missing, non-boolean or unreadable preferences count as disabled.
        """
        try:
            value = await self.db.get(preference_path(user_id, room_id))
        except RemoteError as e:
            logger.warning("preference_read_failed", user_id=user_id, room_id=room_id, error=str(e))
            return False
        return value is True

    async def set_timer_enabled(self, user_id: str, room_id: str, enabled: bool) -> None:
        await self.db.set(preference_path(user_id, room_id), bool(enabled))

    async def add_member(self, room_id: str, user_id: str, info: Optional[Dict[str, Any]] = None) -> None:
        await self.db.set(f"{members_path(room_id)}/{user_id}", info or True)
