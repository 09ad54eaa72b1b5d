"""Pytest configuration and shared fixtures."""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID

import pytest

from tips_core.activity.memory import InMemoryLiveActivitySurface
from tips_core.activity.mirror import LiveActivityMirror
from tips_core.context.session import ItemCategory, StaticSessionContext
from tips_core.engine.reconciler import TimerReconciliationEngine
from tips_core.events.bus import EventBus
from tips_core.events.types import Event
from tips_core.models.config import NotificationConfig, TimerConfig
from tips_core.notifications.memory import InMemoryNotificationCenter
from tips_core.notifications.scheduler import NotificationScheduler
from tips_core.storage.backends import InMemoryKeyValueStore, LocalFileStore
from tips_core.storage.local import FileTimerSource, KeyValueTimerSource, LocalTimerStore
from tips_core.storage.memory_db import InMemoryRealtimeDatabase
from tips_core.storage.remote import RemoteTimerMirror, RoomDirectory, RoomSettingsMirror
from tips_core.utils.clock import FixedClock
from tips_core.utils.rate_limit import SaveRateLimiter

ROOM = "room_1"
OTHER_ROOM = "room_2"
MEMBERS = ["user_a", "user_b"]

T0 = datetime(2025, 1, 6, 12, 0, 0, tzinfo=timezone.utc)


def room_tree(room_ids: List[str] = None, members: List[str] = None) -> Dict[str, Any]:
    """Database tree with members who all opted in to timer notifications."""
    room_ids = room_ids or [ROOM, OTHER_ROOM]
    members = members or MEMBERS
    return {
        "rooms": {room_id: {"users": {user_id: True for user_id in members}} for room_id in room_ids},
        "users": {
            user_id: {
                "roomSettings": {room_id: {"treatmentFoodTimerEnabled": True} for room_id in room_ids}
            }
            for user_id in members
        },
    }


class Device:
    """One phone: its own storage, scheduler, activity surface and engine."""

    def __init__(
        self,
        db: InMemoryRealtimeDatabase,
        clock: FixedClock,
        directory: str,
        config: Optional[TimerConfig] = None,
        await_fanout: bool = True,
    ):
        self.db = db
        self.clock = clock
        self.session = StaticSessionContext(clock=clock)
        self.items: Dict[str, List[UUID]] = {}
        for room_id, name in ((ROOM, "Sam"), (OTHER_ROOM, "Alex")):
            self.session.add_room(room_id, name)
            self.items[room_id] = [
                self.session.add_item(room_id, category=ItemCategory.TREATMENT),
                self.session.add_item(room_id, category=ItemCategory.TREATMENT),
            ]
            self.session.add_item(room_id, category=ItemCategory.MEDICINE)
        self.session.set_current_room(ROOM)

        self.kv = InMemoryKeyValueStore()
        self.files = LocalFileStore(directory)
        self.local_store = LocalTimerStore(
            [FileTimerSource(self.files, "timer_state.json"), KeyValueTimerSource(self.kv, "treatmentTimerState")],
            clock=clock,
            rate_limiter=SaveRateLimiter(5.0, clock=clock),
        )
        self.center = InMemoryNotificationCenter()
        self.surface = InMemoryLiveActivitySurface()
        self.scheduler = NotificationScheduler(
            self.center,
            RoomDirectory(db),
            config=NotificationConfig(await_fanout=await_fanout),
            clock=clock,
        )
        self.bus = EventBus(enable_history=True)
        self.events: List[Event] = []
        self.bus.subscribe_all(self.events.append)
        self.engine = TimerReconciliationEngine(
            session=self.session,
            local_store=self.local_store,
            remote=RemoteTimerMirror(db),
            scheduler=self.scheduler,
            activity=LiveActivityMirror(self.surface, db, clock),
            room_settings=RoomSettingsMirror(db),
            event_bus=self.bus,
            config=config,
            clock=clock,
        )

    def event_types(self) -> List[str]:
        return [event.event_type for event in self.events]

    def log_all(self, room_id: str = ROOM) -> None:
        for item_id in self.items[room_id]:
            self.session.log_item(room_id, item_id)

    async def settle(self) -> None:
        """Let change callbacks and background fan-outs finish."""
        await self.db.drain()
        await self.scheduler.drain()
        await self.db.drain()


@pytest.fixture
def clock() -> FixedClock:
    """Provide a fixed clock at a known time."""
    return FixedClock(T0)


@pytest.fixture
def db() -> InMemoryRealtimeDatabase:
    """Provide a realtime database with two rooms and two opted-in members."""
    return InMemoryRealtimeDatabase(room_tree())


@pytest.fixture
def center() -> InMemoryNotificationCenter:
    return InMemoryNotificationCenter()


@pytest.fixture
def surface() -> InMemoryLiveActivitySurface:
    return InMemoryLiveActivitySurface()


@pytest.fixture
def kv_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def file_store(tmp_path) -> LocalFileStore:
    return LocalFileStore(str(tmp_path / "state"))


@pytest.fixture
def local_store(file_store, kv_store, clock) -> LocalTimerStore:
    """Provide a file + key-value timer store."""
    return LocalTimerStore(
        [FileTimerSource(file_store, "timer_state.json"), KeyValueTimerSource(kv_store, "treatmentTimerState")],
        clock=clock,
        rate_limiter=SaveRateLimiter(5.0, clock=clock),
    )


@pytest.fixture
def make_device(db, clock, tmp_path) -> Callable[..., Device]:
    """Factory for devices sharing one database and clock."""
    counter = {"n": 0}

    def factory(**kwargs: Any) -> Device:
        counter["n"] += 1
        return Device(db, clock, str(tmp_path / f"device_{counter['n']}"), **kwargs)

    return factory


@pytest.fixture
def device(make_device) -> Device:
    """Provide a single device."""
    return make_device()
