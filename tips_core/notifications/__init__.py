"""
Timer notifications for tips-core.
"""

from tips_core.notifications.memory import InMemoryNotificationCenter
from tips_core.notifications.scheduler import (NotificationScheduler, fanout_key, notification_body,
                                               notification_title, thread_identifier)

__all__ = [
    "NotificationScheduler",
    "InMemoryNotificationCenter",
    "notification_title",
    "notification_body",
    "thread_identifier",
    "fanout_key",
]
