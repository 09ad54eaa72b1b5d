"""
Validation utilities for tips-core.

Provides input validation helpers for the public engine API.
"""

from typing import Optional, Union

from tips_core.utils.exceptions import ValidationError

MAX_ID_LENGTH = 255


def validate_room_id(room_id: str) -> str:
    """
    Validate a room ID.

    Args:
        room_id: Room ID to validate

    Returns:
        Validated room ID (stripped)

    Raises:
        ValidationError: If room_id is invalid

    Example:
        >>> validate_room_id(" room_1 ")
        'room_1'
    """
    if not isinstance(room_id, str) or not room_id.strip():
        raise ValidationError("room_id cannot be empty")

    room_id = room_id.strip()

    if len(room_id) > MAX_ID_LENGTH:
        raise ValidationError(
            "room_id too long",
            details={"max_length": MAX_ID_LENGTH, "actual_length": len(room_id)},
        )

    # Database keys cannot contain path separators
    if "/" in room_id:
        raise ValidationError("room_id cannot contain '/'", details={"room_id": room_id})

    return room_id


def validate_duration(
    duration: Optional[Union[int, float]],
    field_name: str = "duration",
) -> Optional[float]:
    """
    Validate a duration in seconds.

    ``None`` passes through so callers can fall back to a default.

    Raises:
        ValidationError: If the duration is not a positive number
    """
    if duration is None:
        return None

    if isinstance(duration, bool) or not isinstance(duration, (int, float)):
        raise ValidationError(
            f"{field_name} must be a number of seconds",
            details={field_name: repr(duration)},
        )

    if duration <= 0:
        raise ValidationError(
            f"{field_name} must be positive",
            details={field_name: duration},
        )

    return float(duration)
