"""
Event Handling Example

Subscribes to timer lifecycle events and lets the ticker drive expiry.
"""

import asyncio
import tempfile

from tips_core import TimerReconciliationEngine, TipsConfig
from tips_core.context import StaticSessionContext
from tips_core.events import EventBus, EventType, TimerEvent
from tips_core.models.config import StorageConfig, TimerConfig
from tips_core.notifications import InMemoryNotificationCenter
from tips_core.storage import InMemoryRealtimeDatabase
from tips_core.utils import setup_logging


class ExpiryPrompt:
    """Stands in for the UI's "time for the next treatment food" prompt."""

    def __init__(self):
        self.shown = asyncio.Event()

    async def handle(self, event: TimerEvent):
        print(f"⏰ Timer {event.timer_id} in {event.room_id} has ended")
        self.shown.set()


async def main():
    setup_logging(level="WARNING")

    session = StaticSessionContext()
    session.add_room("room_1", "Sam")
    session.add_item("room_1")
    session.set_current_room("room_1")

    bus = EventBus(enable_history=True)
    prompt = ExpiryPrompt()
    bus.subscribe(EventType.TIMER_EXPIRED, prompt.handle, priority=10)
    bus.subscribe_all(lambda event: print(f"📣 {event.event_type}"))

    with tempfile.TemporaryDirectory() as directory:
        config = TipsConfig(
            timer=TimerConfig(tick_interval=0.5),
            storage=StorageConfig(directory=directory),
        )
        engine = TimerReconciliationEngine.from_config(
            config, session, InMemoryRealtimeDatabase(), InMemoryNotificationCenter(), event_bus=bus
        )

        await engine.start_session(run_ticker=True)
        await engine.start(duration=2)
        await asyncio.wait_for(prompt.shown.wait(), timeout=10)
        await engine.end_session()

    print(f"📊 Bus statistics: {bus.get_statistics()}")


if __name__ == "__main__":
    asyncio.run(main())
