"""
Events published by the timer engine.

Every event carries the room it concerns so UI handlers can subscribe to a
single room (see ``EventBus.subscribe(..., room_id=...)``).
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class EventType(str, Enum):
    TIMER_STARTED = "timer.started"
    TIMER_SNOOZED = "timer.snoozed"
    TIMER_STOPPED = "timer.stopped"
    TIMER_EXPIRED = "timer.expired"
    TIMER_FOUND = "timer.found"

    ROOM_SWITCHED = "room.switched"
    OVERRIDE_CHANGED = "override.changed"

    ERROR_OCCURRED = "error.occurred"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Event(BaseModel):
    """
    Common envelope.

    ``event_type`` is stored as its string value, so handlers can compare
    against either ``EventType.TIMER_STARTED`` or ``"timer.started"``.
    ``data`` holds small extras such as ``source`` ("local"/"remote") on
    ``TIMER_FOUND`` or ``clear_room`` on ``TIMER_STOPPED``.
    """

    model_config = ConfigDict(use_enum_values=True)

    event_id: str = Field(default_factory=lambda: uuid4().hex)
    event_type: EventType
    timestamp: datetime = Field(default_factory=_utcnow)
    data: Dict[str, Any] = Field(default_factory=dict)


class TimerEvent(Event):
    """
    A timer changed state.

    ``TIMER_EXPIRED`` is the UI's cue to show the expiry prompt;
    ``TIMER_FOUND`` means a different timer became the foreground timer.
    ``remaining`` is measured when the event is built, never negative.
    """

    room_id: str
    timer_id: Optional[str] = None
    end_time: Optional[datetime] = None
    remaining: Optional[float] = None


class RoomEvent(Event):
    room_id: str
    previous_room_id: Optional[str] = None


class OverrideEvent(Event):
    """The room's admin duration override was written or observed remotely."""

    room_id: str
    enabled: bool
    duration_seconds: int


class ErrorEvent(Event):
    """
    A collaborator failed and the engine carried on.

    Attributes:
        error_type: Exception class name
        error_message: ``str()`` of the exception
        component: Collaborator that failed, e.g. "remote"
        room_id: Room being processed, if any
    """

    error_type: str
    error_message: str
    component: str
    room_id: Optional[str] = None
