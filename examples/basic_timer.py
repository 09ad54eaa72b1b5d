"""
Basic Timer Example

Runs one room's treatment timer against the in-memory collaborators:
start, snooze, a notification tap and auto-complete.
"""

import asyncio
import tempfile

from tips_core import TimerReconciliationEngine, TipsConfig
from tips_core.activity import InMemoryLiveActivitySurface
from tips_core.context import StaticSessionContext
from tips_core.models.config import StorageConfig
from tips_core.notifications import InMemoryNotificationCenter
from tips_core.storage import InMemoryRealtimeDatabase
from tips_core.utils import FixedClock, setup_logging


def build_database() -> InMemoryRealtimeDatabase:
    """One room with two members who both want timer notifications."""
    members = ["parent", "child"]
    return InMemoryRealtimeDatabase(
        {
            "rooms": {"room_1": {"users": {user_id: True for user_id in members}}},
            "users": {
                user_id: {"roomSettings": {"room_1": {"treatmentFoodTimerEnabled": True}}}
                for user_id in members
            },
        }
    )


async def main():
    setup_logging(level="WARNING")

    clock = FixedClock()
    session = StaticSessionContext(clock=clock)
    session.add_room("room_1", "Sam")
    peanut = session.add_item("room_1")
    sesame = session.add_item("room_1")
    session.set_current_room("room_1")

    db = build_database()
    center = InMemoryNotificationCenter()
    surface = InMemoryLiveActivitySurface()

    with tempfile.TemporaryDirectory() as directory:
        config = TipsConfig(storage=StorageConfig(directory=directory))
        engine = TimerReconciliationEngine.from_config(config, session, db, center, surface, clock=clock)

        await engine.start_session()
        timer = await engine.start()
        print(f"⏱️  Started {timer.id}, {engine.remaining():.0f}s left")
        print(f"🔔 Pending notifications: {len(center.pending_identifiers)}")

        clock.advance(600)
        print(f"⏱️  Tick: {await engine.tick():.0f}s left")

        snoozed = await engine.snooze()
        print(f"😴 Snoozed, same id: {snoozed.id == timer.id}, {engine.remaining():.0f}s left")

        delivered = center.fire_due(clock.advance(300))
        print(f"📬 Delivered: {[request.title for request in delivered]}")
        await engine.handle_notification_action("room_1", "SNOOZE", delivered[0].identifier)
        print(f"😴 Snoozed from the notification, {engine.remaining():.0f}s left")

        session.log_item("room_1", peanut)
        restarted = await engine.on_item_logged(peanut)
        print(f"🥜 Logged one item, new timer for {len(restarted.associated_item_ids)} item(s)")

        session.log_item("room_1", sesame)
        await engine.on_item_logged(sesame)
        print(f"✅ All items logged, phase: {engine.phase().value}")

        await engine.end_session()


if __name__ == "__main__":
    asyncio.run(main())
