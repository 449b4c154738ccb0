"""Timing utilities for engine entry points."""

import time
from functools import wraps
from typing import Callable

from clinic_analytics.core.logging import get_logger

logger = get_logger(__name__)


def performance_monitor(func: Callable) -> Callable:
    """Decorator to monitor function performance."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.perf_counter()
        try:
            result = func(*args, **kwargs)
            execution_time = time.perf_counter() - start_time
            logger.debug(
                f"Function {func.__name__} executed in {execution_time:.4f}s",
                function=func.__name__,
                execution_time=execution_time,
                args_count=len(args),
                kwargs_count=len(kwargs),
            )
            return result
        except Exception as e:
            execution_time = time.perf_counter() - start_time
            logger.error(
                f"Function {func.__name__} failed after {execution_time:.4f}s: {e}",
                function=func.__name__,
                execution_time=execution_time,
                error=str(e),
            )
            raise

    return wrapper


class Stopwatch:
    """Context manager measuring elapsed wall time in seconds."""

    def __init__(self):
        self.started = 0.0
        self.elapsed = 0.0

    def __enter__(self) -> "Stopwatch":
        self.started = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.elapsed = time.perf_counter() - self.started
