from __future__ import annotations

import logging
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 5


def exponential_delay(
    base_seconds: float = 0.05,
    *,
    coefficient: float = 2.0,
    cap_seconds: float | None = 1.0,
) -> Callable[[int], float]:
    def delay(attempt: int) -> float:
        seconds = base_seconds * (coefficient ** (attempt - 1))
        if cap_seconds is not None and seconds > cap_seconds:
            return cap_seconds
        return seconds

    return delay


def linear_delay(step_seconds: float = 0.05) -> Callable[[int], float]:
    def delay(attempt: int) -> float:
        return step_seconds * attempt

    return delay


def _always(_err: Exception) -> bool:
    return True


def backoff_call[R](
    fn: Callable[[], R],
    *,
    max_retries: int = DEFAULT_MAX_RETRIES,
    should_retry: Callable[[Exception], bool] = _always,
    delay: Callable[[int], float] | None = None,
    sleep: Callable[[float], None] | None = time.sleep,
) -> R:
    """Calls ``fn`` until it succeeds, retrying failures ``should_retry`` accepts.

    The last error propagates once ``max_retries`` retries are used up.
    """
    if max_retries < 0:
        raise ValueError("max_retries must be >= 0")

    delay = delay or exponential_delay()
    attempt = 0
    while True:
        try:
            return fn()
        except Exception as err:
            if attempt >= max_retries or not should_retry(err):
                raise
            attempt += 1
            seconds = delay(attempt)
            logger.debug("retrying after %s (attempt %d/%d, sleeping %.3fs)", err, attempt, max_retries, seconds)
            if sleep is not None:
                sleep(seconds)
