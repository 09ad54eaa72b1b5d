"""
In-memory live activity surface.
"""

import itertools
from typing import Dict, List

from tips_core.interfaces.activity import LiveActivityInterface
from tips_core.models.activity import LiveActivityState
from tips_core.utils.exceptions import ActivityError


class InMemoryLiveActivitySurface(LiveActivityInterface):
    """
    Records activities per room instead of drawing them.

    Example:
        >>> surface = InMemoryLiveActivitySurface()
        >>> surface.state_for("room_1").end_time
    """

    def __init__(self, enabled: bool = True):
        self._enabled = enabled
        self._activities: Dict[str, LiveActivityState] = {}
        self._ids = itertools.count(1)
        self.ended: List[LiveActivityState] = []
        self.request_count = 0
        self.fail_requests = False

    def enabled(self) -> bool:
        return self._enabled

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled

    async def request(self, state: LiveActivityState) -> str:
        if not self._enabled:
            raise ActivityError("Live activities are disabled", details={"room_id": state.room_id})
        if self.fail_requests:
            raise ActivityError("Activity request failed", details={"room_id": state.room_id})
        self.request_count += 1
        self._activities[state.room_id] = state
        return f"activity_{next(self._ids)}"

    async def update(self, state: LiveActivityState) -> bool:
        if state.room_id not in self._activities:
            return False
        self._activities[state.room_id] = state
        return True

    async def end(self, state: LiveActivityState) -> bool:
        if self._activities.pop(state.room_id, None) is None:
            return False
        self.ended.append(state)
        return True

    async def active(self) -> List[LiveActivityState]:
        return list(self._activities.values())

    def state_for(self, room_id: str) -> LiveActivityState:
        """Current content for a room; raises KeyError if none is showing."""
        return self._activities[room_id]

    def is_showing(self, room_id: str) -> bool:
        return room_id in self._activities
