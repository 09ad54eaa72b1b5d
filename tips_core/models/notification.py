"""
Notification models for tips-core.

Defines the structured notification key and the request handed to the
OS notification scheduler.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

TREATMENT_TIMER_CATEGORY = "TREATMENT_TIMER"
OS_DEFAULT_ACTION_IDENTIFIER = "com.apple.UNNotificationDefaultActionIdentifier"


class NotificationKey(BaseModel):
    """
    Structured identity of one per-user timer notification.

    Matching is done on these fields. The string ``identifier`` is only
    what the OS scheduler stores.

    Example:
        >>> key = NotificationKey(timer_id="t1", room_id="r1", user_id="u1")
        >>> key.identifier
        't1_room_r1_user_u1'
    """

    timer_id: str = Field(..., min_length=1)
    room_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)

    model_config = ConfigDict(frozen=True)

    @property
    def identifier(self) -> str:
        return f"{self.timer_id}_room_{self.room_id}_user_{self.user_id}"

    def matches(self, timer_id: str, room_id: str) -> bool:
        return self.timer_id == timer_id and self.room_id == room_id

    def to_metadata(self, participant_name: str) -> Dict[str, str]:
        """Payload attached to the notification (read back on response)."""
        return {
            "roomId": self.room_id,
            "timerId": self.timer_id,
            "participantName": participant_name,
            "userId": self.user_id,
        }

    @classmethod
    def from_metadata(cls, metadata: Dict[str, Any]) -> Optional["NotificationKey"]:
        timer_id = metadata.get("timerId")
        room_id = metadata.get("roomId")
        user_id = metadata.get("userId")
        if not all(isinstance(v, str) and v for v in (timer_id, room_id, user_id)):
            return None
        return cls(timer_id=timer_id, room_id=room_id, user_id=user_id)

    @classmethod
    def parse(cls, identifier: str) -> Optional["NotificationKey"]:
        """Recover a key from an identifier string, if it has the expected shape."""
        head, sep, user_id = identifier.rpartition("_user_")
        if not sep:
            return None
        timer_id, sep, room_id = head.rpartition("_room_")
        if not sep or not timer_id or not room_id or not user_id:
            return None
        return cls(timer_id=timer_id, room_id=room_id, user_id=user_id)


class ScheduledNotification(BaseModel):
    """
    A one-shot local notification request.

    Attributes:
        identifier: Scheduler identifier (unique among pending requests)
        title: Notification title
        body: Notification body
        delay_seconds: Seconds from scheduling until delivery (>= 1)
        repeats: Always False for timer notifications
        category: Action category (snooze / go to room)
        thread_identifier: Groups notifications of one timer
        metadata: Structured payload (roomId, timerId, participantName, userId)
        scheduled_at: When the request was handed to the scheduler
    """

    identifier: str = Field(..., min_length=1)
    title: str
    body: str
    delay_seconds: float = Field(..., ge=1)
    repeats: bool = False
    category: str = TREATMENT_TIMER_CATEGORY
    thread_identifier: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    scheduled_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def key(self) -> Optional[NotificationKey]:
        return NotificationKey.from_metadata(self.metadata)

    def belongs_to(self, timer_id: str, room_id: str) -> bool:
        """
        True if this request was scheduled for ``(timer_id, room_id)``.

        Requests carrying a structured key match on it exactly. Identifiers
        from older builds without metadata match on the timer id prefix.
        """
        key = self.key
        if key is not None:
            return key.matches(timer_id, room_id)
        return self.identifier.startswith(timer_id)


class NotificationAction(str, Enum):
    """Actions a user can take on a delivered timer notification."""

    SNOOZE = "SNOOZE"
    GO_TO_ROOM = "GO_TO_ROOM"
    DEFAULT = "DEFAULT"

    @classmethod
    def parse(cls, value: str) -> Optional["NotificationAction"]:
        """Map an OS action identifier to an action; None if unknown."""
        if value == OS_DEFAULT_ACTION_IDENTIFIER:
            return cls.DEFAULT
        try:
            return cls(value)
        except ValueError:
            return None
