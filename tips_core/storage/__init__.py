"""
Storage for tips-core.

Local persistence of the foreground timer and remote mirrors of the
shared room records.
"""

from tips_core.storage.backends import InMemoryKeyValueStore, JsonKeyValueStore, LocalFileStore
from tips_core.storage.local import FileTimerSource, KeyValueTimerSource, LocalTimerStore, TimerSource
from tips_core.storage.memory_db import InMemoryRealtimeDatabase
from tips_core.storage.remote import RemoteTimerMirror, RoomDirectory, RoomSettingsMirror

__all__ = [
    # Backends
    "LocalFileStore",
    "JsonKeyValueStore",
    "InMemoryKeyValueStore",
    # Local timer store
    "LocalTimerStore",
    "TimerSource",
    "FileTimerSource",
    "KeyValueTimerSource",
    # Remote
    "RemoteTimerMirror",
    "RoomSettingsMirror",
    "RoomDirectory",
    "InMemoryRealtimeDatabase",
]
