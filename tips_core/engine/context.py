"""
Timer context.

Owns the per-room map of active timers and the foreground timer for one
signed-in session.
"""

from typing import Dict, Iterator, List, Optional, Tuple

from tips_core.models.timer import TreatmentTimer
from tips_core.utils.logging import get_logger

logger = get_logger(__name__)


class TimerContext:
    """
    Active timers of a session, keyed by room id.

    ``open`` and ``close`` bracket a signed-in session; closing drops
    every entry so nothing leaks into the next account.

    Example:
        >>> context = TimerContext()
        >>> context.open()
        >>> context.set("room_1", timer)
        >>> context.get("room_1").id
    """

    def __init__(self):
        self._timers: Dict[str, TreatmentTimer] = {}
        self._foreground: Optional[TreatmentTimer] = None
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> None:
        self._timers.clear()
        self._foreground = None
        self._open = True
        logger.debug("timer_context_opened")

    def close(self) -> None:
        count = len(self._timers)
        self._timers.clear()
        self._foreground = None
        self._open = False
        logger.debug("timer_context_closed", dropped=count)

    @property
    def foreground(self) -> Optional[TreatmentTimer]:
        """Timer shown for the foreground room."""
        return self._foreground

    @foreground.setter
    def foreground(self, timer: Optional[TreatmentTimer]) -> None:
        self._foreground = timer

    def get(self, room_id: str) -> Optional[TreatmentTimer]:
        return self._timers.get(room_id)

    def set(self, room_id: str, timer: TreatmentTimer) -> None:
        self._timers[room_id] = timer

    def remove(self, room_id: str) -> Optional[TreatmentTimer]:
        return self._timers.pop(room_id, None)

    def replace_all(self, timers: Dict[str, TreatmentTimer]) -> None:
        self._timers = dict(timers)

    def rooms(self) -> List[str]:
        return list(self._timers.keys())

    def items(self) -> List[Tuple[str, TreatmentTimer]]:
        return list(self._timers.items())

    def snapshot(self) -> Dict[str, TreatmentTimer]:
        return dict(self._timers)

    def __contains__(self, room_id: object) -> bool:
        return room_id in self._timers

    def __len__(self) -> int:
        return len(self._timers)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._timers))
