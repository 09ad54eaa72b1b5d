"""
Utility modules for tips-core.

Modules:
    exceptions: Custom exception hierarchy
    logging: Structured logging configuration
    validation: Input validation helpers
    async_utils: Async/await utilities
    clock: Wall clock and test clock
    rate_limit: Save debounce limiter
    config: Configuration loading and management
"""

from tips_core.utils.clock import Clock, FixedClock
from tips_core.utils.config import load_config, merge_configs, save_config
from tips_core.utils.exceptions import (
    ActivityError,
    ConfigError,
    CorruptRecordError,
    NotificationError,
    PermissionDeniedError,
    RemoteError,
    StorageError,
    TipsError,
    ValidationError,
)
from tips_core.utils.logging import get_logger, log_error, setup_logging
from tips_core.utils.rate_limit import SaveRateLimiter
from tips_core.utils.validation import validate_duration, validate_room_id

__all__ = [
    # Exceptions
    "TipsError",
    "ConfigError",
    "StorageError",
    "CorruptRecordError",
    "RemoteError",
    "NotificationError",
    "ActivityError",
    "ValidationError",
    "PermissionDeniedError",
    # Logging
    "setup_logging",
    "get_logger",
    "log_error",
    # Validation
    "validate_room_id",
    "validate_duration",
    # Time
    "Clock",
    "FixedClock",
    "SaveRateLimiter",
    # Config
    "load_config",
    "save_config",
    "merge_configs",
]
