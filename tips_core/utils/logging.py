"""
Logging configuration for tips-core.

Every module logs through structlog with snake_case event names and
key/value context (``room_id``, ``timer_id``, ...).
"""

import logging
import sys
from typing import Any, Dict, List, Optional

import structlog

from tips_core.utils.exceptions import TipsError

_FILE_FORMAT = "[%(asctime)s] [TreatmentTimer] %(levelname)s %(message)s"


def _processors(format_type: str) -> List[Any]:
    shared: List[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
    ]
    if format_type == "json":
        return shared + [
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(sort_keys=True),
        ]
    return shared + [
        structlog.processors.TimeStamper(fmt="%H:%M:%S"),
        structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()),
    ]


def setup_logging(
    level: str = "INFO",
    format_type: str = "text",
    log_file: Optional[str] = None,
) -> None:
    """
    Configure structlog for the timer core.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: "text" for a console renderer, "json" for one JSON
            object per line
        log_file: Also append stdlib log records to this file (the app's
            timer log)

    Example:
        >>> setup_logging(level="DEBUG", format_type="json")
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    root = logging.getLogger()
    root.setLevel(numeric_level)
    if log_file:
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        root.addHandler(handler)

    structlog.configure(
        processors=_processors(format_type),
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str, **initial_values: Any) -> structlog.BoundLogger:
    """
    Logger for ``name`` with ``initial_values`` bound to every entry.

    Example:
        >>> logger = get_logger(__name__, component="engine")
        >>> logger.info("timer_started", room_id="room_1")
    """
    logger = structlog.get_logger(name)
    return logger.bind(**initial_values) if initial_values else logger


def log_error(error: Exception, context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Keyword arguments describing ``error`` for a log call.

    ``TipsError`` details and causes are included.

    Example:
        >>> try:
        ...     await mirror.set("room_1", timer)
        ... except RemoteError as e:
        ...     logger.error("remote_write_failed", **log_error(e, {"room_id": "room_1"}))
    """
    entry: Dict[str, Any] = {"error_type": type(error).__name__}
    if isinstance(error, TipsError):
        entry["error_message"] = error.message
        if error.details:
            entry["error_details"] = error.details
        if error.cause is not None:
            entry["error_cause"] = repr(error.cause)
    else:
        entry["error_message"] = str(error)
    if context:
        entry["context"] = context
    return entry
