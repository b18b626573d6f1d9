"""Retry helpers for optimistic concurrency conflicts."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, TypeVar

from kubernetes.client.exceptions import ApiException

from .. import config, metrics

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


def is_conflict(e: Exception) -> bool:
    """Check whether an exception is an HTTP 409 conflict."""
    return isinstance(e, ApiException) and e.status == 409


def retry_on_conflict(
    fn: Callable[[], _T],
    operation: str = "update",
    attempts: int | None = None,
    base_delay: float | None = None,
    max_delay: float | None = None,
    sleep: Callable[[float], Any] = time.sleep,
) -> _T:
    """Run a read-modify-write function, retrying on conflicts.

    The function must re-read the object it writes so every attempt works on
    the latest resource version. Backoff doubles from base_delay up to max_delay.

    Args:
        fn: Function performing the read-modify-write
        operation: Operation name for metrics
        attempts: Maximum number of attempts (default from CONFLICT_RETRY_ATTEMPTS)
        base_delay: First backoff in seconds
        max_delay: Backoff cap in seconds
        sleep: Sleep function, replaceable in tests

    Returns:
        Whatever fn returns

    Raises:
        ApiException: The last conflict once attempts are exhausted, or any
            non-conflict error immediately
    """
    attempts = attempts if attempts is not None else config.conflict_retry_attempts()
    delay = base_delay if base_delay is not None else config.conflict_retry_base_delay()
    cap = max_delay if max_delay is not None else config.conflict_retry_max_delay()

    for attempt in range(1, max(attempts, 1) + 1):
        try:
            return fn()
        except ApiException as e:
            if not is_conflict(e) or attempt >= attempts:
                raise
            metrics.conflict_retries_total.labels(operation=operation).inc()
            logger.debug(f"Conflict during {operation}, retry {attempt}/{attempts} in {delay:.2f}s")
            sleep(delay)
            delay = min(delay * 2, cap)

    # Unreachable, the loop either returns or raises
    raise RuntimeError(f"retry_on_conflict exhausted for {operation}")
