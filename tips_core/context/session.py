"""
Static session context.

In-memory implementation of ``SessionContextInterface`` holding rooms,
their items, and today's consumption log.
"""

from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional, Set
from uuid import UUID, uuid4

from tips_core.interfaces.session import SessionContextInterface
from tips_core.utils.clock import Clock, ensure_utc
from tips_core.utils.exceptions import ValidationError
from tips_core.utils.logging import get_logger
from tips_core.utils.validation import validate_room_id

logger = get_logger(__name__)


class ItemCategory(str, Enum):
    """Item categories of a cycle. Only treatment items gate the timer."""

    MEDICINE = "medicine"
    MAINTENANCE = "maintenance"
    TREATMENT = "treatment"
    RECOMMENDED = "recommended"


class _Room:
    def __init__(self, name: Optional[str]):
        self.name = name
        self.items: Dict[UUID, ItemCategory] = {}
        self.logs: Dict[UUID, List[date]] = {}


class StaticSessionContext(SessionContextInterface):
    """
    Session context kept in memory.

    "Today" is the UTC calendar day of the injected clock.

    Example:
        >>> session = StaticSessionContext(clock=clock)
        >>> session.add_room("room_1", "Sam")
        >>> peanut = session.add_item("room_1")
        >>> session.set_current_room("room_1")
        >>> session.log_item("room_1", peanut)
    """

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or Clock()
        self._rooms: Dict[str, _Room] = {}
        self._current: Optional[str] = None

    @property
    def current_room_id(self) -> Optional[str]:
        return self._current

    def set_current_room(self, room_id: Optional[str]) -> None:
        if room_id is not None:
            self._room(room_id)
        self._current = room_id
        logger.debug("session_room_selected", room_id=room_id)

    def add_room(self, room_id: str, name: Optional[str] = None) -> None:
        validate_room_id(room_id)
        if room_id not in self._rooms:
            self._rooms[room_id] = _Room(name)
        else:
            self._rooms[room_id].name = name

    def add_item(
        self,
        room_id: str,
        item_id: Optional[UUID] = None,
        category: ItemCategory = ItemCategory.TREATMENT,
    ) -> UUID:
        """
        Add an item to a room's current cycle.

        Returns:
            The item id
        """
        room = self._room(room_id)
        item_id = item_id or uuid4()
        room.items[item_id] = ItemCategory(category)
        return item_id

    def remove_item(self, room_id: str, item_id: UUID) -> None:
        room = self._room(room_id)
        room.items.pop(item_id, None)
        room.logs.pop(item_id, None)

    def log_item(self, room_id: str, item_id: UUID, when: Optional[datetime] = None) -> None:
        """Record a consumption of the item (default: now)."""
        room = self._room(room_id)
        if item_id not in room.items:
            raise ValidationError("Unknown item", details={"room_id": room_id, "item_id": str(item_id)})
        day = ensure_utc(when or self.clock.now()).date()
        room.logs.setdefault(item_id, []).append(day)

    def unlog_item(self, room_id: str, item_id: UUID, day: Optional[date] = None) -> bool:
        """
        Remove the item's consumptions on ``day`` (default: today).

        Returns:
            True if anything was removed
        """
        room = self._room(room_id)
        day = day or self._today()
        logs = room.logs.get(item_id, [])
        kept = [d for d in logs if d != day]
        room.logs[item_id] = kept
        return len(kept) != len(logs)

    def room_name(self, room_id: str) -> Optional[str]:
        room = self._rooms.get(room_id)
        return room.name if room else None

    def treatment_item_ids(self, room_id: str) -> Set[UUID]:
        room = self._rooms.get(room_id)
        if room is None:
            return set()
        return {item_id for item_id, category in room.items.items() if category == ItemCategory.TREATMENT}

    def qualifying_items_for_today(self, room_id: str) -> Set[UUID]:
        room = self._rooms.get(room_id)
        if room is None:
            return set()
        today = self._today()
        return {
            item_id
            for item_id in self.treatment_item_ids(room_id)
            if today not in room.logs.get(item_id, [])
        }

    def _today(self) -> date:
        return self.clock.now().date()

    def _room(self, room_id: str) -> _Room:
        room = self._rooms.get(room_id)
        if room is None:
            raise ValidationError("Unknown room", details={"room_id": room_id})
        return room
