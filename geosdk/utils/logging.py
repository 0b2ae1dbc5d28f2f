"""Structured logging utilities."""
import json
import logging
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional

LOGGER_NAME = "geosdk"


def setup_logging(level: str = "INFO"):
    """Setup structured JSON logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(message)s',
        handlers=[logging.StreamHandler()]
    )


def get_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAME)


def log_structured(level: str, message: str, **kwargs):
    """
    Log structured JSON message.

    Args:
        level: Log level (info, warning, error, etc.)
        message: Log message
        **kwargs: Additional structured fields
    """
    log_entry = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": level.upper(),
        "message": message,
        **kwargs
    }

    logger = get_logger()
    getattr(logger, level.lower(), logger.info)(json.dumps(log_entry, ensure_ascii=False, default=str))


def log_error(error: BaseException, context: Optional[Dict[str, Any]] = None):
    """
    Log an exception with its traceback and forward it to error tracking.

    Args:
        error: The exception to record
        context: Extra structured fields (operation, partition ids, ...)
    """
    from geosdk.utils.error_tracking import capture_exception

    context = context or {}
    log_structured(
        "error",
        f"{type(error).__name__}: {error}",
        error_type=type(error).__name__,
        traceback="".join(traceback.format_exception(type(error), error, error.__traceback__)),
        **context
    )
    capture_exception(error, context)
