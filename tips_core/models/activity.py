"""
Live activity models for tips-core.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_serializer, field_validator

from tips_core.constants import DEFAULT_TIMER_DURATION
from tips_core.utils.clock import ensure_utc, format_iso8601


class LiveActivityState(BaseModel):
    """
    Content of a room's live activity, as mirrored to ``rooms/{roomId}/liveActivity``.

    Attributes:
        room_id: Room the activity belongs to
        room_name: Participant label shown on the activity
        end_time: Countdown target
        is_active: False once expired or ended
        total_duration: Full timer length in seconds, for the progress bar
        last_updated: Milliseconds since epoch of the last backend write
    """

    room_id: str = Field(..., min_length=1, alias="roomId")
    room_name: str = Field(default="", alias="roomName")
    end_time: datetime = Field(..., alias="endTime")
    is_active: bool = Field(default=True, alias="isActive")
    total_duration: float = Field(default=DEFAULT_TIMER_DURATION, alias="duration", ge=0)
    last_updated: Optional[int] = Field(default=None, alias="lastUpdated")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("end_time")
    @classmethod
    def end_time_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @field_serializer("end_time")
    def serialize_end_time(self, v: datetime) -> str:
        return format_iso8601(v)

    def progress(self, now: datetime) -> float:
        """Fraction of the countdown elapsed, clamped to [0, 1]."""
        if self.total_duration <= 0:
            return 1.0
        remaining = (self.end_time - ensure_utc(now)).total_seconds()
        return min(max(1.0 - remaining / self.total_duration, 0.0), 1.0)

    def to_record(self) -> Dict[str, Any]:
        """Backend record; the room id is implied by the path."""
        return self.model_dump(mode="json", by_alias=True, exclude={"room_id"}, exclude_none=True)

    @classmethod
    def from_record(cls, room_id: str, data: Any) -> Optional["LiveActivityState"]:
        if not isinstance(data, dict):
            return None
        try:
            return cls.model_validate({**data, "roomId": room_id})
        except ValidationError:
            return None
