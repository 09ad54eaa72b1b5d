"""
Timer models for tips-core.

Defines the treatment timer record shared by every device in a room, the
persisted local envelope, and the room-wide duration override.
"""

import json
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Set
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_serializer, field_validator

from tips_core.constants import (DEFAULT_SNOOZE_DURATION, DEFAULT_TIMER_DURATION,
                                 MIN_SCHEDULE_DELAY, TIMER_ID_PREFIX)
from tips_core.utils.clock import ensure_utc, format_iso8601


def new_timer_id() -> str:
    """Generate a fresh timer instance id."""
    return f"{TIMER_ID_PREFIX}{str(uuid4()).upper()}"


class TreatmentTimer(BaseModel):
    """
    A countdown gating the next treatment food in a room.

    ``end_time`` is the only authoritative value; nothing decrements a
    stored duration. Field names are snake_case in Python and camelCase on
    the wire (remote record and local file).

    Attributes:
        id: Unique per timer instance, new on every start
        is_active: Whether the timer is running
        end_time: Absolute end timestamp (UTC)
        associated_item_ids: Unlogged qualifying items at start time
        notification_ids: Scheduled notification identifiers for cancellation
        room_name: Participant label captured at creation

    Example:
        >>> timer = TreatmentTimer(end_time=now + timedelta(seconds=900))
        >>> timer.is_effective(now)
        True
    """

    id: str = Field(default_factory=new_timer_id, min_length=1, description="Timer instance id")
    is_active: bool = Field(default=True, alias="isActive", description="Whether running")
    end_time: datetime = Field(..., alias="endTime", description="Absolute end time (UTC)")
    associated_item_ids: Optional[List[UUID]] = Field(
        default=None, alias="associatedItemIds", description="Items this timer gates"
    )
    notification_ids: Optional[List[str]] = Field(
        default=None, alias="notificationIds", description="Scheduled notification ids"
    )
    room_name: Optional[str] = Field(
        default=None, alias="roomName", description="Participant label at creation"
    )

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("end_time")
    @classmethod
    def end_time_utc(cls, v: datetime) -> datetime:
        """Normalize to timezone-aware UTC, whole seconds (the wire precision)."""
        return ensure_utc(v).replace(microsecond=0)

    @field_validator("associated_item_ids", mode="before")
    @classmethod
    def drop_invalid_item_ids(cls, v: Any) -> Any:
        """Skip item ids that are not UUIDs instead of rejecting the record."""
        if v is None or not isinstance(v, (list, tuple, set)):
            return v
        valid = []
        for item in v:
            if isinstance(item, UUID):
                valid.append(item)
                continue
            try:
                valid.append(UUID(str(item)))
            except ValueError:
                continue
        return valid

    @field_serializer("end_time")
    def serialize_end_time(self, v: datetime) -> str:
        return format_iso8601(v)

    @property
    def item_ids(self) -> Set[UUID]:
        """Associated item ids as a set."""
        return set(self.associated_item_ids or [])

    def is_effective(self, now: datetime) -> bool:
        """True if active and not yet expired at ``now``."""
        return self.is_active and self.end_time > ensure_utc(now)

    def remaining(self, now: datetime) -> float:
        """Seconds left at ``now`` (may be negative once expired)."""
        return (self.end_time - ensure_utc(now)).total_seconds()

    def extended(
        self,
        end_time: datetime,
        notification_ids: Optional[List[str]] = None,
    ) -> "TreatmentTimer":
        """Copy with a new end time; same id, items and room name."""
        return self.model_copy(
            update={
                "is_active": True,
                "end_time": ensure_utc(end_time).replace(microsecond=0),
                "notification_ids": notification_ids,
            }
        )

    def to_record(self) -> Dict[str, Any]:
        """Dict in the shape stored at ``rooms/{roomId}/treatmentTimer``."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_record(cls, data: Any) -> Optional["TreatmentTimer"]:
        """
        Parse a remote or local record.

        Returns:
            The timer, or None if the record is missing or malformed
        """
        if not isinstance(data, dict):
            return None
        try:
            return cls.model_validate(data)
        except ValidationError:
            return None

    @classmethod
    def starting_now(
        cls,
        now: datetime,
        duration: float,
        associated_item_ids: Optional[List[UUID]] = None,
        room_name: Optional[str] = None,
    ) -> "TreatmentTimer":
        """Create a fresh timer ending ``duration`` seconds after ``now``."""
        return cls(
            id=new_timer_id(),
            is_active=True,
            end_time=ensure_utc(now) + timedelta(seconds=duration),
            associated_item_ids=associated_item_ids,
            room_name=room_name,
        )


class TimerState(BaseModel):
    """
    Persisted envelope for the local timer record.

    Wrapping the timer keeps "no timer" (``{"timer": null}``) distinct
    from a record that failed to decode. ``roomId`` tags the snapshot with
    the foreground room it was written for; older snapshots lack it.
    """

    timer: Optional[TreatmentTimer] = None
    room_id: Optional[str] = Field(default=None, alias="roomId")

    model_config = ConfigDict(populate_by_name=True)

    def belongs_to(self, room_id: Optional[str]) -> bool:
        """True unless both this snapshot and ``room_id`` name different rooms."""
        return room_id is None or self.room_id is None or self.room_id == room_id

    def to_json(self) -> str:
        """Serialize as {"timer": {...} | null}; absent optional fields are omitted."""
        payload: Dict[str, Any] = {"timer": self.timer.to_record() if self.timer else None}
        if self.room_id is not None:
            payload["roomId"] = self.room_id
        return json.dumps(payload)

    @classmethod
    def from_json(cls, raw: str) -> "TimerState":
        """
        Decode a persisted envelope.

        Raises:
            pydantic.ValidationError: If the payload is corrupted
        """
        return cls.model_validate_json(raw)


class TreatmentTimerOverride(BaseModel):
    """
    Room-wide admin override of the default timer duration.

    Attributes:
        enabled: Whether the override applies
        duration_seconds: Override duration, coerced to at least 1 second

    Example:
        >>> TreatmentTimerOverride(enabled=True, duration_seconds=60).effective_duration()
        60.0
    """

    enabled: bool = Field(default=False, description="Whether the override applies")
    duration_seconds: int = Field(
        default=DEFAULT_TIMER_DURATION, alias="durationSeconds", description="Duration in seconds"
    )

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("duration_seconds")
    @classmethod
    def at_least_one_second(cls, v: int) -> int:
        return max(v, MIN_SCHEDULE_DELAY)

    def effective_duration(self, default: float = DEFAULT_TIMER_DURATION) -> float:
        """Override duration when enabled, else ``default``."""
        if self.enabled and self.duration_seconds > 0:
            return float(self.duration_seconds)
        return float(default)

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)

    @classmethod
    def from_record(cls, data: Any) -> Optional["TreatmentTimerOverride"]:
        """Parse a stored override; None if missing or malformed."""
        if not isinstance(data, dict):
            return None
        if not isinstance(data.get("enabled"), bool) or not isinstance(
            data.get("durationSeconds"), int
        ):
            return None
        try:
            return cls.model_validate(data)
        except ValidationError:
            return None
