"""
TIPs Core - Treatment timer reconciliation for the TIPs tracking app.

This package keeps one authoritative treatment timer per room in sync
across a device's local storage, the shared realtime database record, the
OS notification scheduler and the lock-screen live activity.

Core Components:
    - Engine: Start, snooze, stop, reconcile and room switching
    - Storage: Local snapshot store and remote room mirrors
    - Notifications: Per-user, preference-gated notification fan-out
    - Activity: Live activity start, progress and cross-device mirroring
    - Context: Session rooms, items and today's consumption log
    - Events: Event bus for lifecycle events
    - Utils: Logging, configuration, validation and clocks

Example:
    >>> from tips_core import TimerReconciliationEngine, TipsConfig
    >>>
    >>> engine = TimerReconciliationEngine.from_config(TipsConfig(), session, db, center)
    >>> await engine.start_session("room_1")
    >>> timer = await engine.start()
    >>> print(engine.remaining())
"""

from tips_core.__version__ import (
    __author__,
    __author_email__,
    __description__,
    __license__,
    __title__,
    __url__,
    __version__,
    __version_info__,
)
from tips_core.engine import TimerPhase, TimerReconciliationEngine
from tips_core.models import TipsConfig, TreatmentTimer, TreatmentTimerOverride

__all__ = [
    "__version__",
    "__version_info__",
    "__title__",
    "__description__",
    "__author__",
    "__author_email__",
    "__license__",
    "__url__",
    "TimerReconciliationEngine",
    "TimerPhase",
    "TreatmentTimer",
    "TreatmentTimerOverride",
    "TipsConfig",
]

# Other components are imported from their modules, for example:
#   from tips_core.storage import InMemoryRealtimeDatabase, LocalTimerStore
#   from tips_core.notifications import NotificationScheduler
#   from tips_core.events import EventBus, EventType
