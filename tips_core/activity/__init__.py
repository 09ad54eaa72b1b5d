"""
Live activity mirroring for tips-core.
"""

from tips_core.activity.memory import InMemoryLiveActivitySurface
from tips_core.activity.mirror import LiveActivityMirror, activity_path

__all__ = [
    "LiveActivityMirror",
    "InMemoryLiveActivitySurface",
    "activity_path",
]
