"""
Interface definitions for tips-core.

This package contains abstract base classes (ABCs) for every platform
service the timer core talks to. The core never calls a vendor SDK
directly; apps provide implementations of these contracts.

Modules:
    storage: KeyValueStoreInterface, FileStoreInterface
    database: RealtimeDatabaseInterface, SubscriptionHandle
    notifier: NotificationCenterInterface
    activity: LiveActivityInterface
    session: SessionContextInterface
"""

from tips_core.interfaces.activity import LiveActivityInterface
from tips_core.interfaces.database import ChangeCallback, RealtimeDatabaseInterface, SubscriptionHandle
from tips_core.interfaces.notifier import NotificationCenterInterface
from tips_core.interfaces.session import SessionContextInterface
from tips_core.interfaces.storage import FileStoreInterface, KeyValueStoreInterface

__all__ = [
    "KeyValueStoreInterface",
    "FileStoreInterface",
    "RealtimeDatabaseInterface",
    "SubscriptionHandle",
    "ChangeCallback",
    "NotificationCenterInterface",
    "LiveActivityInterface",
    "SessionContextInterface",
]
