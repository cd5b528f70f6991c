"""
Exponential backoff for push delivery.
"""
from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from functools import wraps
from typing import Callable, Iterator


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Backoff:
    """Delay schedule: ``initial * base**n`` capped at ``ceiling``, plus up to 25% jitter."""
    retries: int = 2
    initial: float = 0.5
    base: float = 2.0
    ceiling: float = 10.0
    jitter: bool = True

    def delays(self) -> Iterator[float]:
        delay = self.initial
        for _ in range(self.retries):
            spread = delay * 0.25 * random.random() if self.jitter else 0.0
            yield min(delay + spread, self.ceiling)
            delay *= self.base


def retry_with_backoff(
    backoff: Backoff,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
):
    """Wrap ``func`` so failures in ``retry_on`` are retried on the ``backoff`` schedule.

    The last failure propagates once the schedule is exhausted.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            for attempt, delay in enumerate(backoff.delays(), start=1):
                try:
                    return func(*args, **kwargs)
                except retry_on as e:
                    logger.warning(
                        "push_retry_scheduled",
                        extra={"operation": func.__name__, "error": str(e), "attempt": attempt},
                    )
                    sleep(delay)
            return func(*args, **kwargs)

        return wrapper
    return decorator
