"""
Timer Reconciliation Engine.

Keeps one authoritative treatment timer per room consistent across this
device's storage, the shared room record, the notification scheduler and
the live activity surface.

Every mutating operation runs under a single ``asyncio.Lock``. Events are
queued while the lock is held and published once it is released, so
event handlers may call back into the engine.
"""

import asyncio
from datetime import timedelta
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple, Union
from uuid import UUID

from tips_core.activity.mirror import LiveActivityMirror
from tips_core.constants import LIVE_ACTIVITY_EXPIRY_LEAD, TIMER_ID_PREFIX
from tips_core.engine.context import TimerContext
from tips_core.engine.ticker import ForegroundTicker
from tips_core.events.bus import EventBus
from tips_core.events.types import ErrorEvent, Event, EventType, OverrideEvent, RoomEvent, TimerEvent
from tips_core.interfaces.activity import LiveActivityInterface
from tips_core.interfaces.database import RealtimeDatabaseInterface, SubscriptionHandle
from tips_core.interfaces.notifier import NotificationCenterInterface
from tips_core.interfaces.session import SessionContextInterface
from tips_core.models.config import TimerConfig, TipsConfig
from tips_core.models.merge import MergeSource, latest_timer, merge_timer_states
from tips_core.models.notification import NotificationAction
from tips_core.models.timer import TreatmentTimer, TreatmentTimerOverride
from tips_core.notifications.scheduler import DEFAULT_PARTICIPANT_NAME, NotificationScheduler
from tips_core.storage.local import LocalTimerStore
from tips_core.storage.remote import RemoteTimerMirror, RoomDirectory, RoomSettingsMirror
from tips_core.utils.clock import Clock
from tips_core.utils.exceptions import RemoteError, ValidationError
from tips_core.utils.logging import get_logger, log_error
from tips_core.utils.validation import validate_duration, validate_room_id

logger = get_logger(__name__)


class TimerPhase(str, Enum):
    """Lifecycle phase of a room's timer."""

    NO_TIMER = "no_timer"
    RUNNING = "running"
    EXPIRED_PENDING_CLEANUP = "expired_pending_cleanup"


def _same_timer(a: Optional[TreatmentTimer], b: Optional[TreatmentTimer]) -> bool:
    if a is None or b is None:
        return a is b
    return a.id == b.id and a.end_time == b.end_time and a.is_active == b.is_active


class TimerReconciliationEngine:
    """
    Coordinator of the treatment timer lifecycle.

    Features:
    - start / snooze / stop with notification scheduling and cancellation
    - Local and remote reconciliation with the later end time winning
    - Foreground room switching with a single remote watch
    - Auto start and auto stop driven by today's consumption log
    - Per-second tick driving expiry and live activity progress
    - Notification actions (snooze, go to room) and resume from background

    Attributes:
        session: Current room and today's qualifying items
        local_store: This device's timer snapshot
        remote: Shared room timer record
        scheduler: Per-user notification fan-out
        activity: Live activity mirror, if the platform has one
        room_settings: Admin override reads and writes
        event_bus: Receiver of lifecycle events
        context: Per-room active timers and the foreground timer
        config: Timer behaviour
        ticker: Foreground ticker (not started automatically)

    Example:
        >>> engine = TimerReconciliationEngine.from_config(
        ...     TipsConfig(), session, db, center, surface
        ... )
        >>> await engine.start_session("room_1")
        >>> timer = await engine.start()
        >>> await engine.snooze()
        >>> await engine.stop(clear_room=True)
    """

    def __init__(
        self,
        session: SessionContextInterface,
        local_store: LocalTimerStore,
        remote: RemoteTimerMirror,
        scheduler: NotificationScheduler,
        activity: Optional[LiveActivityMirror] = None,
        room_settings: Optional[RoomSettingsMirror] = None,
        event_bus: Optional[EventBus] = None,
        context: Optional[TimerContext] = None,
        config: Optional[TimerConfig] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize engine.

        Args:
            session: Session context
            local_store: Local timer store
            remote: Remote timer mirror
            scheduler: Notification scheduler
            activity: Optional live activity mirror
            room_settings: Optional override mirror (default duration only without it)
            event_bus: Optional event bus
            context: Timer context (a new one if omitted)
            config: Timer configuration
            clock: Time source
        """
        self.session = session
        self.local_store = local_store
        self.remote = remote
        self.scheduler = scheduler
        self.activity = activity
        self.room_settings = room_settings
        self.event_bus = event_bus
        self.context = context or TimerContext()
        self.config = config or TimerConfig()
        self.clock = clock or Clock()
        self.ticker = ForegroundTicker(self.tick, self.config.tick_interval)

        self._lock = asyncio.Lock()
        self._outbox: List[Event] = []
        self._overrides: Dict[str, TreatmentTimerOverride] = {}
        self._durations: Dict[str, float] = {}
        self._current_room: Optional[str] = None
        self._override_handle: Optional[SubscriptionHandle] = None
        self._checking = False

        logger.info("timer_engine_created", default_duration=self.config.default_duration)

    @classmethod
    def from_config(
        cls,
        config: TipsConfig,
        session: SessionContextInterface,
        db: RealtimeDatabaseInterface,
        center: NotificationCenterInterface,
        surface: Optional[LiveActivityInterface] = None,
        event_bus: Optional[EventBus] = None,
        clock: Optional[Clock] = None,
    ) -> "TimerReconciliationEngine":
        """Wire an engine from configuration and platform collaborators."""
        clock = clock or Clock()
        scheduler = NotificationScheduler(
            center,
            RoomDirectory(db),
            config=config.notifications,
            clock=clock,
            min_delay=config.timer.min_schedule_delay,
        )
        return cls(
            session=session,
            local_store=LocalTimerStore.from_config(config.storage, clock),
            remote=RemoteTimerMirror(db),
            scheduler=scheduler,
            activity=LiveActivityMirror(surface, db, clock) if surface is not None else None,
            room_settings=RoomSettingsMirror(db),
            event_bus=event_bus,
            config=config.timer,
            clock=clock,
        )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def current_room_id(self) -> Optional[str]:
        """Foreground room; the session's selection until a room is switched to."""
        if self._current_room is not None:
            return self._current_room
        return self.session.current_room_id

    @property
    def foreground_timer(self) -> Optional[TreatmentTimer]:
        return self.context.foreground

    @property
    def active_timers(self) -> Dict[str, TreatmentTimer]:
        return self.context.snapshot()

    def get_timer(self, room_id: Optional[str] = None) -> Optional[TreatmentTimer]:
        room = self._resolve_room(room_id)
        return self.context.get(room) if room else None

    def phase(self, room_id: Optional[str] = None) -> TimerPhase:
        """
        Phase of a room's timer at the current time.

        A timer still held after its end time is waiting for the tick
        that cleans it up.
        """
        timer = self.get_timer(room_id)
        if timer is None:
            return TimerPhase.NO_TIMER
        if timer.is_effective(self.clock.now()):
            return TimerPhase.RUNNING
        return TimerPhase.EXPIRED_PENDING_CLEANUP

    def remaining(self, room_id: Optional[str] = None) -> Optional[float]:
        """Seconds left on a room's timer (never negative), None without a timer."""
        timer = self.get_timer(room_id)
        if timer is None:
            return None
        return max(timer.remaining(self.clock.now()), 0.0)

    def effective_duration(self, room_id: Optional[str] = None) -> float:
        """Admin override duration for the room when enabled, else the default."""
        room = self._resolve_room(room_id)
        override = self._overrides.get(room) if room else None
        if override is None:
            return float(self.config.default_duration)
        return override.effective_duration(self.config.default_duration)

    def _at_least_minimum(self, seconds: float) -> float:
        # end times are whole seconds; anything shorter would start expired
        return max(float(seconds), float(self.config.min_schedule_delay))

    def _resolve_room(self, room_id: Optional[str]) -> Optional[str]:
        if room_id is not None:
            return validate_room_id(room_id)
        return self.current_room_id

    def _is_foreground(self, room_id: str) -> bool:
        return room_id == self.current_room_id

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def _emit(self, event: Event) -> None:
        self._outbox.append(event)

    def _emit_timer(
        self,
        event_type: EventType,
        room_id: str,
        timer: TreatmentTimer,
        **data: Any,
    ) -> None:
        self._emit(
            TimerEvent(
                event_type=event_type,
                room_id=room_id,
                timer_id=timer.id,
                end_time=timer.end_time,
                remaining=max(timer.remaining(self.clock.now()), 0.0),
                data=data,
            )
        )

    def _emit_error(self, error: Exception, component: str, room_id: Optional[str] = None) -> None:
        self._emit(
            ErrorEvent(
                event_type=EventType.ERROR_OCCURRED,
                error_type=type(error).__name__,
                error_message=str(error),
                component=component,
                room_id=room_id,
            )
        )

    async def _flush_events(self) -> None:
        events, self._outbox = self._outbox, []
        if self.event_bus is not None and events:
            await self.event_bus.publish_many(events)

    # ------------------------------------------------------------------
    # Collaborator helpers
    # ------------------------------------------------------------------

    async def _write_remote(self, room_id: str, timer: Optional[TreatmentTimer]) -> bool:
        try:
            await self.remote.set(room_id, timer)
            return True
        except RemoteError as e:
            logger.error(
                "remote_write_failed",
                **log_error(e, {"room_id": room_id, "timer_id": timer.id if timer else None}),
            )
            self._emit_error(e, "remote", room_id)
            return False

    async def _ensure_override(self, room_id: str) -> None:
        if self.room_settings is None or room_id in self._overrides:
            return
        try:
            self._overrides[room_id] = await self.room_settings.get_override(room_id)
        except RemoteError as e:
            logger.warning("override_read_failed", **log_error(e, {"room_id": room_id}))

    async def _save_local(self, room_id: str, timer: Optional[TreatmentTimer], force: bool = True) -> None:
        if self._is_foreground(room_id):
            await self.local_store.save(timer, force=force, room_id=room_id)

    def _total_duration(self, room_id: str) -> float:
        return self._durations.get(room_id) or self.effective_duration(room_id)

    # ------------------------------------------------------------------
    # Start / snooze / stop
    # ------------------------------------------------------------------

    async def start(
        self,
        room_id: Optional[str] = None,
        duration: Optional[float] = None,
    ) -> Optional[TreatmentTimer]:
        """
        Start a fresh timer for a room.

        Any running timer in the room is replaced. Nothing happens when no
        room is selected or every treatment item is already logged today.

        Args:
            room_id: Room to start in (default: foreground room)
            duration: Seconds (default: override or configured default)

        Returns:
            The new timer, or None if nothing was started

        Raises:
            ValidationError: If room_id or duration is invalid
        """
        duration = validate_duration(duration)
        room = self._resolve_room(room_id)
        if room is None:
            logger.info("timer_start_skipped", reason="no_room")
            return None

        async with self._lock:
            timer = await self._start_locked(room, duration)
        await self._flush_events()
        return timer

    async def _start_locked(
        self,
        room_id: str,
        duration: Optional[float],
        items: Optional[Set[UUID]] = None,
    ) -> Optional[TreatmentTimer]:
        if items is None:
            items = self.session.qualifying_items_for_today(room_id)
        if not items:
            logger.info("timer_start_skipped", room_id=room_id, reason="no_unlogged_items")
            return None

        await self._ensure_override(room_id)
        existing = self.context.get(room_id)
        if existing is not None:
            await self.scheduler.cancel_for_timer(existing.id, room_id)

        if duration is None:
            duration = self.effective_duration(room_id)
        total = self._at_least_minimum(duration)
        name = (
            self.session.room_name(room_id)
            or (existing.room_name if existing else None)
            or DEFAULT_PARTICIPANT_NAME
        )
        timer = TreatmentTimer.starting_now(
            self.clock.now(),
            total,
            associated_item_ids=sorted(items, key=str),
            room_name=name,
        )
        identifiers = await self.scheduler.schedule_for_timer(timer, room_id, name, total)
        timer = timer.model_copy(update={"notification_ids": identifiers})

        self.context.set(room_id, timer)
        self._durations[room_id] = total
        if self._is_foreground(room_id):
            self.context.foreground = timer
            await self._save_local(room_id, timer)

        await self._write_remote(room_id, timer)
        if self.activity is not None:
            await self.activity.start(room_id, name, timer.end_time, total)

        logger.info(
            "timer_started",
            room_id=room_id,
            timer_id=timer.id,
            duration=total,
            items=len(items),
            notifications=len(identifiers),
        )
        self._emit_timer(EventType.TIMER_STARTED, room_id, timer, duration=total)
        return timer

    async def snooze(
        self,
        room_id: Optional[str] = None,
        duration: Optional[float] = None,
    ) -> Optional[TreatmentTimer]:
        """
        Push a room's timer out to ``now + duration``.

        The timer keeps its id; its notifications are cancelled and
        rescheduled for the new end time.

        Args:
            room_id: Room (default: foreground room)
            duration: Extra seconds from now (default: configured snooze)

        Returns:
            The snoozed timer, or None if the room has no timer
        """
        duration = validate_duration(duration)
        room = self._resolve_room(room_id)
        if room is None:
            return None

        async with self._lock:
            timer = await self._snooze_locked(room, duration or float(self.config.snooze_duration))
        await self._flush_events()
        return timer

    async def _snooze_locked(self, room_id: str, duration: float) -> Optional[TreatmentTimer]:
        duration = self._at_least_minimum(duration)
        timer = self.context.get(room_id)
        if timer is None:
            logger.info("timer_snooze_skipped", room_id=room_id, reason="no_timer")
            return None

        await self.scheduler.cancel_identifiers(timer.notification_ids or [])
        await self.scheduler.cancel_for_timer(timer.id, room_id)

        name = timer.room_name or self.session.room_name(room_id) or DEFAULT_PARTICIPANT_NAME
        end_time = self.clock.now() + timedelta(seconds=duration)
        identifiers = await self.scheduler.schedule_for_timer(timer, room_id, name, duration)
        snoozed = timer.extended(end_time, identifiers)

        self.context.set(room_id, snoozed)
        self._durations[room_id] = duration
        if self._is_foreground(room_id):
            self.context.foreground = snoozed
            await self._save_local(room_id, snoozed)

        await self._write_remote(room_id, snoozed)
        if self.activity is not None:
            await self.activity.start(room_id, name, end_time, duration)

        logger.info("timer_snoozed", room_id=room_id, timer_id=snoozed.id, duration=duration)
        self._emit_timer(EventType.TIMER_SNOOZED, room_id, snoozed, duration=duration)
        return snoozed

    async def stop(self, room_id: Optional[str] = None, clear_room: bool = False) -> bool:
        """
        Stop a room's timer, or every timer when ``room_id`` is None.

        Pending notifications are always cancelled. With ``clear_room``
        the timer is also forgotten everywhere: the in-memory entry, the
        shared room record, the live activity and (for the foreground
        room) local storage.

        Calling stop again leaves storage unchanged.

        Returns:
            True if a timer was found
        """
        if room_id is not None:
            room_id = validate_room_id(room_id)

        async with self._lock:
            if room_id is None:
                stopped = False
                for room in self.context.rooms():
                    stopped = await self._stop_locked(room, clear_room) or stopped
                if clear_room:
                    self.context.foreground = None
                    await self.local_store.clear()
            else:
                stopped = await self._stop_locked(room_id, clear_room)
        await self._flush_events()
        return stopped

    async def _stop_locked(self, room_id: str, clear_room: bool) -> bool:
        timer = self.context.get(room_id)
        if timer is None:
            logger.debug("timer_stop_skipped", room_id=room_id, reason="no_timer")
            return False

        cancelled = await self.scheduler.cancel_for_timer(timer.id, room_id)

        if clear_room:
            self.context.remove(room_id)
            self._durations.pop(room_id, None)
            await self._write_remote(room_id, None)
            if self.activity is not None:
                await self.activity.end(room_id)
            if self._is_foreground(room_id):
                self.context.foreground = None
                await self.local_store.clear()

        if clear_room or cancelled:
            logger.info("timer_stopped", room_id=room_id, timer_id=timer.id, clear_room=clear_room)
            self._emit_timer(EventType.TIMER_STOPPED, room_id, timer, clear_room=clear_room)
        return True

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    async def reconcile(self, room_id: Optional[str] = None) -> Optional[TreatmentTimer]:
        """
        Merge the local snapshot with the room record and adopt the winner.

        A local winner is written back to the room record; a remote winner
        is written to local storage. When neither side is effective the
        room's timer is dropped.

        Returns:
            The winning timer, or None
        """
        room = self._resolve_room(room_id)
        if room is None:
            return None

        async with self._lock:
            timer = await self._reconcile_locked(room)
        await self._flush_events()
        return timer

    async def _reconcile_locked(self, room_id: str) -> Optional[TreatmentTimer]:
        now = self.clock.now()
        foreground = self._is_foreground(room_id)
        local = await self.local_store.load(room_id=room_id) if foreground else None

        remote_ok = True
        try:
            remote = await self.remote.get(room_id)
        except RemoteError as e:
            logger.warning("remote_read_failed", **log_error(e, {"room_id": room_id}))
            remote, remote_ok = None, False
            # keep what this process already knows while the room record is unreachable
            local = latest_timer(local, self.context.get(room_id), now=now)

        result = merge_timer_states(local, remote, now)
        winner = result.timer

        if winner is None:
            dropped = self.context.remove(room_id)
            self._durations.pop(room_id, None)
            if foreground:
                self.context.foreground = None
                await self.local_store.clear()
            if dropped is not None:
                logger.info("timer_reconciled_empty", room_id=room_id, dropped=dropped.id)
            return None

        if result.source is MergeSource.LOCAL and remote_ok and not _same_timer(winner, remote):
            logger.info("remote_timer_repaired", room_id=room_id, timer_id=winner.id)
            await self._write_remote(room_id, winner)

        self.context.set(room_id, winner)
        if foreground:
            if result.source is MergeSource.REMOTE:
                await self._save_local(room_id, winner)
            previous = self.context.foreground
            self.context.foreground = winner
            if previous is None or previous.id != winner.id:
                self._emit_timer(EventType.TIMER_FOUND, room_id, winner, source=result.source.value)

        logger.debug("timer_reconciled", room_id=room_id, timer_id=winner.id, source=result.source.value)
        return winner

    async def check_active_timers(
        self,
        room_ids: Iterable[str],
    ) -> Optional[Dict[str, TreatmentTimer]]:
        """
        Rebuild the active-timer map from the room records.

        Rooms are read concurrently. A room whose read fails keeps its
        current entry. Overlapping calls are coalesced: a call made while
        another is running returns None immediately.

        Returns:
            Map of room id to effective timer, or None if coalesced
        """
        if self._checking:
            logger.debug("timer_check_coalesced")
            return None

        self._checking = True
        try:
            rooms = [validate_room_id(room_id) for room_id in room_ids]
            fetched = await asyncio.gather(*(self._fetch_room(room) for room in rooms))

            async with self._lock:
                found = self._collect_found(rooms, fetched)
                self.context.replace_all(found)
                await self._adopt_foreground(rooms, found)
                result = self.context.snapshot()
            await self._flush_events()
        finally:
            self._checking = False

        logger.info("active_timers_checked", rooms=len(rooms), active=len(result))
        return result

    async def _fetch_room(self, room_id: str) -> Tuple[bool, Optional[TreatmentTimer]]:
        try:
            return True, await self.remote.get(room_id)
        except RemoteError as e:
            logger.warning("remote_read_failed", **log_error(e, {"room_id": room_id}))
            return False, None

    def _collect_found(
        self,
        rooms: List[str],
        fetched: List[Tuple[bool, Optional[TreatmentTimer]]],
    ) -> Dict[str, TreatmentTimer]:
        now = self.clock.now()
        found: Dict[str, TreatmentTimer] = {}
        for room, (ok, timer) in zip(rooms, fetched):
            if not ok:
                timer = self.context.get(room)
            if timer is not None and timer.is_effective(now):
                found[room] = timer
        return found

    async def _adopt_foreground(self, rooms: List[str], found: Dict[str, TreatmentTimer]) -> None:
        current = self.current_room_id
        if current is None or current not in rooms:
            return

        timer = found.get(current)
        previous = self.context.foreground
        if timer is not None:
            self.context.foreground = timer
            if not _same_timer(previous, timer):
                await self._save_local(current, timer)
            if previous is None or previous.id != timer.id:
                self._emit_timer(EventType.TIMER_FOUND, current, timer, source="check")
        elif previous is not None:
            self.context.foreground = None
            await self.local_store.clear()

    # ------------------------------------------------------------------
    # Room switching and remote changes
    # ------------------------------------------------------------------

    async def switch_room(self, room_id: str) -> Optional[TreatmentTimer]:
        """
        Make ``room_id`` the foreground room.

        A pending local save for the previous room is flushed, the watches
        move to the new room and the new room is reconciled. Notifications
        of the previous room keep running.

        Returns:
            The new foreground timer, or None
        """
        room_id = validate_room_id(room_id)

        async with self._lock:
            previous = self._current_room
            if previous != room_id:
                if previous is not None:
                    await self.local_store.flush()
                self._detach()
                self.context.foreground = None
                self._current_room = room_id
                await self._attach(room_id)

            timer = await self._reconcile_locked(room_id)
            self._emit(
                RoomEvent(
                    event_type=EventType.ROOM_SWITCHED,
                    room_id=room_id,
                    previous_room_id=previous,
                )
            )
        await self._flush_events()

        logger.info("room_switched", room_id=room_id, previous_room_id=previous, has_timer=timer is not None)
        return timer

    async def _attach(self, room_id: str) -> None:
        await self._ensure_override(room_id)

        try:
            await self.remote.watch(room_id, lambda timer: self._on_remote(room_id, timer))
        except RemoteError as e:
            logger.error("remote_watch_failed", **log_error(e, {"room_id": room_id}))
            self._emit_error(e, "remote", room_id)

        if self.activity is not None:
            await self.activity.observe(room_id)

        if self.room_settings is not None:
            try:
                self._override_handle = await self.room_settings.observe(
                    room_id, lambda override: self._on_override(room_id, override)
                )
            except RemoteError as e:
                logger.warning("override_observe_failed", **log_error(e, {"room_id": room_id}))

    def _detach(self) -> None:
        self.remote.unwatch()
        if self.activity is not None:
            self.activity.stop_observing()
        if self._override_handle is not None:
            self._override_handle.cancel()
            self._override_handle = None

    async def _on_remote(self, room_id: str, timer: Optional[TreatmentTimer]) -> None:
        if room_id != self._current_room:
            return
        async with self._lock:
            # the watch may have moved while this delivery waited
            if room_id == self._current_room:
                await self._apply_remote_locked(room_id, await self._current_remote(room_id, timer))
        await self._flush_events()

    async def _current_remote(
        self, room_id: str, delivered: Optional[TreatmentTimer]
    ) -> Optional[TreatmentTimer]:
        """
        The room record as it is now.

        A delivery can be queued behind a transition that already rewrote
        the record (the initial snapshot behind ``start``), so it is
        re-read under the lock. The delivered value is used only when the
        read fails.
        """
        try:
            return await self.remote.get(room_id)
        except RemoteError as e:
            logger.warning("remote_confirm_failed", **log_error(e, {"room_id": room_id}))
            return delivered

    async def _apply_remote_locked(self, room_id: str, timer: Optional[TreatmentTimer]) -> None:
        current = self.context.get(room_id)

        if timer is not None and timer.is_effective(self.clock.now()):
            if _same_timer(current, timer):
                return
            if current is not None and current.id != timer.id:
                await self.scheduler.cancel_for_timer(current.id, room_id)
            self.context.set(room_id, timer)
            self.context.foreground = timer
            await self._save_local(room_id, timer, force=False)
            logger.info("remote_timer_applied", room_id=room_id, timer_id=timer.id)
            if current is None or current.id != timer.id:
                self._emit_timer(EventType.TIMER_FOUND, room_id, timer, source="remote")
            return

        if current is None:
            return
        self.context.remove(room_id)
        self._durations.pop(room_id, None)
        self.context.foreground = None
        await self.local_store.clear()
        await self.scheduler.cancel_for_timer(current.id, room_id)
        logger.info("remote_timer_cleared", room_id=room_id, timer_id=current.id)
        self._emit_timer(EventType.TIMER_STOPPED, room_id, current, clear_room=True, source="remote")

    async def _on_override(self, room_id: str, override: TreatmentTimerOverride) -> None:
        previous = self._overrides.get(room_id)
        self._overrides[room_id] = override
        changed = previous != override if previous is not None else override.enabled
        if not changed:
            return

        logger.info(
            "override_changed",
            room_id=room_id,
            enabled=override.enabled,
            duration_seconds=override.duration_seconds,
        )
        if self.event_bus is not None:
            await self.event_bus.publish(
                OverrideEvent(
                    event_type=EventType.OVERRIDE_CHANGED,
                    room_id=room_id,
                    enabled=override.enabled,
                    duration_seconds=override.duration_seconds,
                )
            )

    async def update_override(
        self,
        enabled: bool,
        duration_seconds: int = 900,
        actor_is_super_admin: bool = False,
        room_id: Optional[str] = None,
    ) -> TreatmentTimerOverride:
        """
        Write a room's duration override (super admins only).

        Raises:
            PermissionDeniedError: If the actor is not a super admin
            ValidationError: If no room is selected
            RemoteError: If the write fails
        """
        room = self._resolve_room(room_id)
        if room is None:
            raise ValidationError("No room selected")
        if self.room_settings is None:
            raise ValidationError("Room settings are not available", details={"room_id": room})

        override = await self.room_settings.update_override(
            room, enabled, duration_seconds, actor_is_super_admin
        )
        await self._on_override(room, override)
        return override

    # ------------------------------------------------------------------
    # Consumption log
    # ------------------------------------------------------------------

    async def on_logs_changed(self, room_id: Optional[str] = None) -> Optional[TreatmentTimer]:
        """
        React to today's log changing.

        No unlogged treatment items left stops and clears the timer;
        unlogged items without a running timer start one.

        Returns:
            The room's timer afterwards, or None
        """
        room = self._resolve_room(room_id)
        if room is None:
            return None

        async with self._lock:
            timer = await self._follow_items_locked(room)
        await self._flush_events()
        return timer

    async def _follow_items_locked(self, room_id: str) -> Optional[TreatmentTimer]:
        items = self.session.qualifying_items_for_today(room_id)
        timer = self.context.get(room_id)

        if not items:
            if timer is not None:
                logger.info("timer_auto_completed", room_id=room_id, timer_id=timer.id)
                await self._stop_locked(room_id, clear_room=True)
            return None

        if timer is None or not timer.is_effective(self.clock.now()):
            return await self._start_locked(room_id, None)
        return timer

    async def on_item_logged(
        self,
        item_id: UUID,
        room_id: Optional[str] = None,
    ) -> Optional[TreatmentTimer]:
        """
        React to a treatment item being logged (call after recording it).

        The timer restarts for the remaining unlogged items, or stops and
        clears when none remain. Non-treatment items are ignored.

        Returns:
            The room's timer afterwards, or None
        """
        room = self._resolve_room(room_id)
        if room is None:
            return None
        if item_id not in self.session.treatment_item_ids(room):
            return self.context.get(room)

        async with self._lock:
            remaining = self.session.qualifying_items_for_today(room) - {item_id}
            if remaining:
                timer = await self._start_locked(room, None, remaining)
            else:
                logger.info("timer_auto_completed", room_id=room, item_id=str(item_id))
                await self._stop_locked(room, clear_room=True)
                timer = None
        await self._flush_events()
        return timer

    async def on_item_unlogged(
        self,
        item_id: UUID,
        room_id: Optional[str] = None,
    ) -> Optional[TreatmentTimer]:
        """
        React to a treatment item log being removed.

        The running timer is cleared and a fresh one started if items are
        unlogged again.
        """
        room = self._resolve_room(room_id)
        if room is None:
            return None
        if item_id not in self.session.treatment_item_ids(room):
            return self.context.get(room)

        async with self._lock:
            await self._stop_locked(room, clear_room=True)
            timer = await self._follow_items_locked(room)
        await self._flush_events()
        return timer

    # ------------------------------------------------------------------
    # Foreground tick
    # ------------------------------------------------------------------

    async def tick(self) -> Optional[float]:
        """
        Advance the foreground countdown.

        A debounced local save whose window has lapsed is written first.
        An expired timer publishes ``TIMER_EXPIRED`` and is stopped and
        cleared. Otherwise the live activity progress is refreshed, and in
        the last seconds it is frozen at zero.

        Returns:
            Seconds left, or None when there is no running timer
        """
        room = self.current_room_id
        if room is None:
            return None

        async with self._lock:
            remaining = await self._tick_locked(room)
        await self._flush_events()
        return remaining

    async def _tick_locked(self, room_id: str) -> Optional[float]:
        await self.local_store.flush_due()
        timer = self.context.get(room_id)
        if timer is None:
            return None

        remaining = timer.remaining(self.clock.now())
        total = self._total_duration(room_id)

        if not timer.is_active or remaining <= 0:
            logger.info("timer_expired", room_id=room_id, timer_id=timer.id)
            self._emit_timer(EventType.TIMER_EXPIRED, room_id, timer)
            await self._stop_locked(room_id, clear_room=True)
            return None

        if self.activity is not None:
            if remaining > LIVE_ACTIVITY_EXPIRY_LEAD:
                await self.activity.update_progress(room_id, timer.end_time, total)
            else:
                await self.activity.mark_expired(room_id, total)
        return remaining

    # ------------------------------------------------------------------
    # Notifications and app lifecycle
    # ------------------------------------------------------------------

    async def handle_notification_action(
        self,
        room_id: str,
        action: Union[NotificationAction, str],
        identifier: Optional[str] = None,
    ) -> bool:
        """
        Handle the user's response to a timer notification.

        Args:
            room_id: Room from the notification's metadata
            action: SNOOZE, GO_TO_ROOM or the OS default tap
            identifier: Notification identifier; non-timer ones are ignored

        Returns:
            True if the action was handled
        """
        if identifier is not None and TIMER_ID_PREFIX not in identifier:
            logger.debug("notification_action_ignored", identifier=identifier)
            return False

        parsed = NotificationAction.parse(action)
        if parsed is None:
            logger.warning("notification_action_unknown", action=str(action), room_id=room_id)
            return False

        room_id = validate_room_id(room_id)
        logger.info("notification_action", action=parsed.value, room_id=room_id)

        if parsed is NotificationAction.SNOOZE:
            await self.snooze(room_id, float(self.config.snooze_duration))
        else:
            await self.stop(room_id, clear_room=True)
            await self.switch_room(room_id)
        return True

    async def resume(self) -> Dict[str, float]:
        """
        Re-check timers after returning to the foreground.

        Expired timers are stopped and cleared. Running timers whose
        notifications are no longer pending get them rescheduled for the
        same end time.

        Returns:
            Seconds left per room with a running timer
        """
        countdowns: Dict[str, float] = {}
        async with self._lock:
            now = self.clock.now()
            for room, timer in self.context.items():
                remaining = timer.remaining(now)
                if not timer.is_active or remaining <= 0:
                    logger.info("timer_expired_while_away", room_id=room, timer_id=timer.id)
                    await self._stop_locked(room, clear_room=True)
                    continue

                countdowns[room] = remaining
                if not await self.scheduler.has_pending(timer.id, room):
                    logger.info("timer_notifications_rescheduled", room_id=room, timer_id=timer.id)
                    await self._snooze_locked(room, remaining)
        await self._flush_events()
        return countdowns

    async def start_session(
        self,
        room_id: Optional[str] = None,
        run_ticker: bool = False,
    ) -> Optional[TreatmentTimer]:
        """
        Begin a signed-in session and attach to the foreground room.

        Args:
            room_id: Room to foreground (default: session's current room)
            run_ticker: Start the foreground ticker

        Returns:
            The foreground timer, or None
        """
        self.context.open()
        room = room_id or self.session.current_room_id
        timer = None
        if room is None:
            logger.info("session_started", room_id=None)
        else:
            timer = await self.switch_room(room)
        if run_ticker:
            self.ticker.start()
        return timer

    async def end_session(self) -> None:
        """Flush pending saves, drop watches and forget the session's timers."""
        await self.ticker.stop()
        async with self._lock:
            await self.local_store.flush()
            self._detach()
            self._current_room = None
            self._overrides.clear()
            self._durations.clear()
            self.context.close()
        await self._flush_events()
        logger.info("session_ended")
