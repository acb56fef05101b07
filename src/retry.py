"""Bounded retry with exponential backoff.

Shared by the provider HTTP clients and the bulk document writer so both
back off the same way.
"""

import logging
import time
from typing import Callable, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delay(attempt: int, base_delay: float, factor: float = 2.0) -> float:
    """Delay before retry number *attempt* (1-based): base * factor**(attempt-1)."""
    return base_delay * (factor ** (attempt - 1))


def with_backoff(
    fn: Callable[[], T],
    *,
    max_attempts: int = 3,
    base_delay: float = 0.25,
    factor: float = 2.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    label: str = "operation",
    sleep: Optional[Callable[[float], None]] = None,
    give_up: Optional[Callable[[BaseException], bool]] = None,
) -> T:
    """Call *fn* until it succeeds or *max_attempts* is reached.

    Args:
        fn: Zero-argument callable to invoke.
        max_attempts: Total number of calls, including the first.
        base_delay: Seconds to wait after the first failure.
        factor: Multiplier applied to the delay after each failure.
        retry_on: Exception types that trigger a retry. Anything else
            propagates immediately.
        label: Name used in log messages.
        sleep: Sleep function (injectable for tests).
        give_up: Predicate on a caught exception; when it returns True the
            exception propagates without further attempts.

    Returns:
        Whatever *fn* returns.

    Raises:
        The last exception raised by *fn* once attempts are exhausted.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    sleep = sleep or time.sleep

    attempt = 0
    while True:
        attempt += 1
        try:
            return fn()
        except retry_on as e:
            if give_up is not None and give_up(e):
                logger.warning("%s failed, not retrying: %s", label, e)
                raise
            if attempt >= max_attempts:
                logger.warning(
                    "%s failed after %d attempts: %s", label, attempt, e
                )
                raise
            delay = backoff_delay(attempt, base_delay, factor)
            logger.warning(
                "%s failed (attempt %d/%d), retrying in %.2fs: %s",
                label, attempt, max_attempts, delay, e,
            )
            sleep(delay)
