"""
Data models package for tips-core.

Pydantic models for the timer record, its persisted envelope, the admin
duration override, notification requests, live activity state and
configuration.

Modules:
    timer: TreatmentTimer, TimerState, TreatmentTimerOverride
    notification: NotificationKey, ScheduledNotification
    activity: LiveActivityState
    merge: merge_timer_states (later end time wins)
    config: Configuration models
"""

from tips_core.models.activity import LiveActivityState
from tips_core.models.config import NotificationConfig, StorageConfig, TimerConfig, TipsConfig
from tips_core.models.merge import MergeResult, MergeSource, latest_timer, merge_timer_states
from tips_core.models.notification import NotificationAction, NotificationKey, ScheduledNotification
from tips_core.models.timer import (DEFAULT_SNOOZE_DURATION, DEFAULT_TIMER_DURATION,
                                    MIN_SCHEDULE_DELAY, TimerState, TreatmentTimer,
                                    TreatmentTimerOverride)

__all__ = [
    # Timer models
    "TreatmentTimer",
    "TimerState",
    "TreatmentTimerOverride",
    "DEFAULT_TIMER_DURATION",
    "DEFAULT_SNOOZE_DURATION",
    "MIN_SCHEDULE_DELAY",
    # Merge rule
    "merge_timer_states",
    "latest_timer",
    "MergeResult",
    "MergeSource",
    # Notification models
    "NotificationKey",
    "ScheduledNotification",
    "NotificationAction",
    # Live activity
    "LiveActivityState",
    # Config models
    "TipsConfig",
    "TimerConfig",
    "StorageConfig",
    "NotificationConfig",
]
