"""Timing utilities for performance monitoring."""
import time
from functools import wraps
from typing import Any, Callable, Dict, Optional

from geosdk.utils.logging import log_structured

# on_progress(step, status, elapsed_ms, details)
ProgressCallback = Callable[[str, str, float, Optional[Dict[str, Any]]], None]


def time_function(func: Callable) -> Callable:
    """Decorator to time function execution."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        result = func(*args, **kwargs)
        elapsed = time.perf_counter() - start

        log_structured(
            "debug",
            f"Function {func.__name__} executed",
            function=func.__name__,
            elapsed_seconds=elapsed
        )

        return result
    return wrapper


class Timer:
    """Context manager for timing code blocks.

    When a progress callback is given it is told when the block starts and
    whether it completed or failed, with the elapsed time in milliseconds.
    Exceptions are never suppressed.
    """

    def __init__(self, operation: str, on_progress: Optional[ProgressCallback] = None):
        """
        Initialize timer.

        Args:
            operation: Name of the operation being timed
            on_progress: Optional progress callback
        """
        self.operation = operation
        self.on_progress = on_progress
        self.details: Dict[str, Any] = {}
        self.start = None
        self.elapsed = None

    @property
    def elapsed_ms(self) -> float:
        if self.elapsed is None:
            return 0.0
        return self.elapsed * 1000.0

    def __enter__(self):
        self.start = time.perf_counter()
        if self.on_progress:
            self.on_progress(self.operation, "started", 0.0, None)
        return self

    def __exit__(self, exc_type, exc, tb):
        self.elapsed = time.perf_counter() - self.start
        status = "failed" if exc_type else "completed"
        log_structured(
            "info" if exc_type is None else "warning",
            f"Operation {self.operation} {status}",
            operation=self.operation,
            elapsed_seconds=self.elapsed,
            **self.details
        )
        if self.on_progress:
            self.on_progress(self.operation, status, self.elapsed_ms, dict(self.details) or None)
        return False
