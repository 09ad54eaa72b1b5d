"""
Session Context Interface - room and consumption state the engine reads.
"""

from abc import ABC, abstractmethod
from typing import Optional, Set
from uuid import UUID


class SessionContextInterface(ABC):
    """
    Read-only view of the signed-in session.

    The engine never mutates logs through this interface; logging happens
    elsewhere and is reported to the engine via ``on_logs_changed``.
    """

    @property
    @abstractmethod
    def current_room_id(self) -> Optional[str]:
        """The foreground room, or None when no room is selected."""
        pass

    @abstractmethod
    def room_name(self, room_id: str) -> Optional[str]:
        """Participant label of the room's current cycle, if known."""
        pass

    @abstractmethod
    def qualifying_items_for_today(self, room_id: str) -> Set[UUID]:
        """
        Treatment-category items in the room not yet logged today.

        Returns:
            Set of item ids (empty when all are logged or none exist)
        """
        pass

    @abstractmethod
    def treatment_item_ids(self, room_id: str) -> Set[UUID]:
        """All treatment-category items in the room, logged or not."""
        pass
