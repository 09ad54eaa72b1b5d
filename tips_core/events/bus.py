"""
Event Bus implementation.

Lets the UI layer follow timer transitions without the engine knowing
who listens. Handlers can follow one event type or every event, and can be
narrowed to a single room.
"""

import inspect
from collections import Counter, deque
from typing import Any, Callable, Deque, Dict, List, NamedTuple, Optional

from tips_core.events.types import Event, EventType
from tips_core.utils.logging import get_logger

logger = get_logger(__name__)

Handler = Callable[[Event], Any]


class _Subscription(NamedTuple):
    priority: int
    handler: Handler
    room_id: Optional[str]

    def wants(self, event: Event) -> bool:
        return self.room_id is None or getattr(event, "room_id", None) == self.room_id


def _name(handler: Handler) -> str:
    return getattr(handler, "__qualname__", type(handler).__name__)


class EventBus:
    """
    Publish/subscribe hub for timer lifecycle events.

    Features:
    - Sync or async handlers
    - Per event type or wildcard subscriptions, optionally for one room
    - Handler priorities (higher runs first, ties keep subscription order)
    - Bounded history and delivery statistics

    A failing handler is logged and counted; delivery continues with the
    next handler.

    Example:
        >>> bus = EventBus()
        >>>
        >>> async def on_expired(event):
        ...     show_prompt(event.room_id)
        >>>
        >>> bus.subscribe(EventType.TIMER_EXPIRED, on_expired, room_id="room_1")
        >>> await bus.publish(TimerEvent(event_type=EventType.TIMER_EXPIRED, room_id="room_1"))
    """

    def __init__(self, enable_history: bool = False, max_history: int = 100):
        """
        Initialize event bus.

        Args:
            enable_history: Keep published events for ``get_history``
            max_history: Events retained (oldest dropped first)
        """
        self.enable_history = enable_history
        self.max_history = max_history

        self._by_type: Dict[str, List[_Subscription]] = {}
        self._wildcard: List[_Subscription] = []
        self._history: Deque[Event] = deque(maxlen=max_history)
        self._stats: Counter = Counter()
        self._per_type: Counter = Counter()

        logger.debug("event_bus_initialized", history_enabled=enable_history, max_history=max_history)

    def subscribe(
        self,
        event_type: EventType,
        handler: Handler,
        priority: int = 0,
        room_id: Optional[str] = None,
    ) -> None:
        """
        Register ``handler`` for one event type.

        Args:
            event_type: Event type to follow
            handler: Callable taking the event; may return an awaitable
            priority: Higher values run earlier
            room_id: Only deliver events for this room
        """
        key = EventType(event_type).value
        subscriptions = self._by_type.setdefault(key, [])
        subscriptions.append(_Subscription(priority, handler, room_id))
        subscriptions.sort(key=lambda s: -s.priority)

        logger.debug("handler_subscribed", event_type=key, handler=_name(handler), priority=priority)

    def subscribe_all(self, handler: Handler, room_id: Optional[str] = None) -> None:
        """Register ``handler`` for every event (after the typed handlers)."""
        self._wildcard.append(_Subscription(0, handler, room_id))
        logger.debug("wildcard_handler_subscribed", handler=_name(handler))

    def unsubscribe(self, event_type: EventType, handler: Handler) -> bool:
        """
        Remove ``handler`` from one event type.

        Returns:
            True if it was subscribed
        """
        key = EventType(event_type).value
        subscriptions = self._by_type.get(key, [])
        kept = [s for s in subscriptions if s.handler != handler]
        if len(kept) == len(subscriptions):
            return False
        self._by_type[key] = kept
        logger.debug("handler_unsubscribed", event_type=key, handler=_name(handler))
        return True

    def unsubscribe_all(self, handler: Handler) -> bool:
        """Remove a wildcard handler; True if it was subscribed."""
        kept = [s for s in self._wildcard if s.handler != handler]
        if len(kept) == len(self._wildcard):
            return False
        self._wildcard = kept
        logger.debug("wildcard_handler_unsubscribed", handler=_name(handler))
        return True

    async def publish(self, event: Event) -> None:
        """Deliver ``event`` to its typed handlers, then to wildcard handlers."""
        self._stats["published"] += 1
        self._per_type[event.event_type] += 1
        if self.enable_history:
            self._history.append(event)

        logger.debug("event_published", event_type=event.event_type, event_id=event.event_id)

        targets = self._by_type.get(event.event_type, []) + self._wildcard
        for subscription in targets:
            if not subscription.wants(event):
                continue
            try:
                result = subscription.handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self._stats["errors"] += 1
                logger.error(
                    "handler_error",
                    event_type=event.event_type,
                    handler=_name(subscription.handler),
                    error=str(e),
                )
            else:
                self._stats["handled"] += 1

    async def publish_many(self, events: List[Event]) -> None:
        """Publish events in order."""
        for event in events:
            await self.publish(event)

    def get_history(
        self,
        event_type: Optional[EventType] = None,
        limit: Optional[int] = None,
        room_id: Optional[str] = None,
    ) -> List[Event]:
        """
        Recorded events, newest first.

        Args:
            event_type: Only this type
            limit: At most this many
            room_id: Only events for this room

        Returns:
            Matching events (empty when history is disabled)
        """
        events = list(reversed(self._history))
        if event_type is not None:
            events = [e for e in events if e.event_type == EventType(event_type).value]
        if room_id is not None:
            events = [e for e in events if getattr(e, "room_id", None) == room_id]
        return events[:limit] if limit else events

    def clear_history(self) -> None:
        self._history.clear()

    def get_subscriber_count(self, event_type: Optional[EventType] = None) -> int:
        """Handlers for one type, or all handlers including wildcards."""
        if event_type is not None:
            return len(self._by_type.get(EventType(event_type).value, []))
        return sum(len(s) for s in self._by_type.values()) + len(self._wildcard)

    def get_statistics(self) -> Dict[str, Any]:
        """Delivery counters, subscriber counts and events published per type."""
        return {
            "published": self._stats["published"],
            "handled": self._stats["handled"],
            "errors": self._stats["errors"],
            "subscribers": self.get_subscriber_count(),
            "wildcard_handlers": len(self._wildcard),
            "by_type": dict(self._per_type),
            "history_size": len(self._history),
        }

    def reset_statistics(self) -> None:
        self._stats.clear()
        self._per_type.clear()
