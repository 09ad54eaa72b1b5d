"""
Live Activity Interface - platform progress surface contract.
"""

from abc import ABC, abstractmethod
from typing import List

from tips_core.models.activity import LiveActivityState


class LiveActivityInterface(ABC):
    """
    Abstract interface for the platform live-activity surface.

    Activities are keyed by room: at most one active activity per room.
    """

    @abstractmethod
    def enabled(self) -> bool:
        """Whether the user allows live activities."""
        pass

    @abstractmethod
    async def request(self, state: LiveActivityState) -> str:
        """
        Start an activity.

        Returns:
            Platform activity identifier

        Raises:
            ActivityError: If the platform refuses the request
        """
        pass

    @abstractmethod
    async def update(self, state: LiveActivityState) -> bool:
        """
        Update the active activity for ``state.room_id``.

        Returns:
            True if an active activity was updated
        """
        pass

    @abstractmethod
    async def end(self, state: LiveActivityState) -> bool:
        """
        End the active activity for ``state.room_id`` and dismiss it.

        Returns:
            True if an active activity was ended
        """
        pass

    @abstractmethod
    async def active(self) -> List[LiveActivityState]:
        """List the currently active activities."""
        pass
