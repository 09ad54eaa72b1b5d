"""
Event System.

Pub/sub event bus carrying timer lifecycle events to the UI layer.
"""

from tips_core.events.bus import EventBus
from tips_core.events.types import ErrorEvent, Event, EventType, OverrideEvent, RoomEvent, TimerEvent

__all__ = [
    "EventBus",
    "Event",
    "EventType",
    "TimerEvent",
    "RoomEvent",
    "OverrideEvent",
    "ErrorEvent",
]
