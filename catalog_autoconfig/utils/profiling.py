"""Timing helpers for pipeline phases and validation stages.

Example:
    >>> from catalog_autoconfig.utils.profiling import profile_time
    >>>
    >>> @profile_time("GraphQL introspection")
    >>> async def introspect(self, endpoint, profile):
    ...     ...
    >>>
    >>> # Logs: [PERF] GraphQL introspection - START
    >>> # Logs: [PERF] GraphQL introspection - DONE in 0.42s
"""

import asyncio
import logging
import time
from functools import wraps
from typing import Any, Callable

logger = logging.getLogger(__name__)


class Stopwatch:
    """Monotonic elapsed-time counter.

    Example:
        >>> watch = Stopwatch()
        >>> ...
        >>> watch.elapsed
        0.0123
    """

    def __init__(self) -> None:
        self._start = time.perf_counter()

    @property
    def elapsed(self) -> float:
        """Seconds since the stopwatch was created."""
        return time.perf_counter() - self._start


def profile_time(operation_name: str) -> Callable:
    """Decorator that logs START/DONE/FAILED with elapsed seconds.

    Works on sync and async callables. Cancellation is logged at DEBUG and
    re-raised untouched.

    Args:
        operation_name: Label used in the [PERF] log lines
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            watch = Stopwatch()
            logger.info(f"[PERF] {operation_name} - START")
            try:
                result = await func(*args, **kwargs)
            except asyncio.CancelledError:
                logger.debug(f"[PERF] {operation_name} - CANCELLED after {watch.elapsed:.2f}s")
                raise
            except Exception as e:
                logger.error(
                    f"[PERF] {operation_name} - FAILED after {watch.elapsed:.2f}s: {e}",
                    extra={"operation": operation_name, "duration": watch.elapsed},
                )
                raise
            logger.info(
                f"[PERF] {operation_name} - DONE in {watch.elapsed:.2f}s",
                extra={"operation": operation_name, "duration": watch.elapsed},
            )
            return result

        @wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            watch = Stopwatch()
            logger.info(f"[PERF] {operation_name} - START")
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.error(
                    f"[PERF] {operation_name} - FAILED after {watch.elapsed:.2f}s: {e}",
                    extra={"operation": operation_name, "duration": watch.elapsed},
                )
                raise
            logger.info(
                f"[PERF] {operation_name} - DONE in {watch.elapsed:.2f}s",
                extra={"operation": operation_name, "duration": watch.elapsed},
            )
            return result

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator
