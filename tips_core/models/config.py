"""
Configuration models for tips-core.

Defines configuration structures for the timer core components.
"""

from pydantic import BaseModel, Field, field_validator

from tips_core.constants import (DEFAULT_SNOOZE_DURATION, DEFAULT_TIMER_DURATION,
                                 MIN_SCHEDULE_DELAY, TIMER_STATE_FILE, TIMER_STATE_KEY)


class TimerConfig(BaseModel):
    """
    Timer behaviour.

    Attributes:
        default_duration: Duration used when no admin override is enabled
        snooze_duration: Default snooze length
        min_schedule_delay: Smallest delay handed to the notification scheduler
        tick_interval: Seconds between foreground ticks

    Example:
        >>> config = TimerConfig(default_duration=600)
    """

    default_duration: int = Field(default=DEFAULT_TIMER_DURATION, ge=1, description="Seconds")
    snooze_duration: int = Field(default=DEFAULT_SNOOZE_DURATION, ge=1, description="Seconds")
    min_schedule_delay: int = Field(default=MIN_SCHEDULE_DELAY, ge=1, description="Seconds")
    tick_interval: float = Field(default=1.0, gt=0.0, le=60.0, description="Tick period")


class StorageConfig(BaseModel):
    """
    Local persistence.

    Attributes:
        directory: Directory holding the timer state file and key-value file
        state_file: Primary timer record file name
        kv_file: File backing the key-value fallback store
        kv_key: Key of the fallback timer record
        save_interval: Debounce window between successful saves
    """

    directory: str = Field(default="./tips_state", min_length=1, description="Storage directory")
    state_file: str = Field(default=TIMER_STATE_FILE, min_length=1)
    kv_file: str = Field(default="defaults.json", min_length=1)
    kv_key: str = Field(default=TIMER_STATE_KEY, min_length=1)
    save_interval: float = Field(default=5.0, ge=0.0, description="Seconds")


class NotificationConfig(BaseModel):
    """
    Notification fan-out.

    Attributes:
        await_fanout: Wait for every per-user scheduling result before
            returning identifiers (exact) instead of firing and returning a
            best-effort key
        max_concurrency: Concurrent per-user preference lookups
    """

    await_fanout: bool = Field(default=True, description="Await per-user scheduling")
    max_concurrency: int = Field(default=8, ge=1, le=100)


class TipsConfig(BaseModel):
    """
    Complete configuration.

    Example:
        >>> config = TipsConfig(timer=TimerConfig(default_duration=600))
    """

    timer: TimerConfig = Field(default_factory=TimerConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="text", description="Log format")
    environment: str = Field(default="development", description="Environment")

    @field_validator("log_level")
    @classmethod
    def log_level_uppercase(cls, v: str) -> str:
        """Convert log level to uppercase."""
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        if v.lower() not in ["json", "text"]:
            raise ValueError("log_format must be 'json' or 'text'")
        return v.lower()
