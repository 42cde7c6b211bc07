"""
Retry policy — bounded retries with exponential backoff and jitter.

Only errors that declare themselves ``retryable`` are retried; any
other exception propagates on the first attempt.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """How many times to try, and how long to wait in between.

    Args:
        attempts: Total attempts, including the first one.
        base_delay: Delay before the first retry, in seconds.
        max_delay: Upper bound for a single delay.
        jitter: Extra random delay, as a fraction of the computed delay.
    """

    attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 8.0
    jitter: float = 0.3
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def delay_for(self, attempt: int) -> float:
        """Delay after the given failed attempt (1-based)."""
        delay = min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)
        return delay + random.uniform(0, delay * self.jitter)

    def call(
        self,
        fn: Callable[[], T],
        *,
        retry_on: type[BaseException] | tuple[type[BaseException], ...],
        label: str = "operation",
    ) -> T:
        """Run ``fn`` until it succeeds or the attempts are used up.

        An exception matching ``retry_on`` is retried only if its
        ``retryable`` attribute is true (or absent). The last error is
        re-raised unchanged.
        """
        attempt = 1
        while True:
            try:
                return fn()
            except retry_on as exc:
                if not getattr(exc, "retryable", True) or attempt >= self.attempts:
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    "%s failed (attempt %d/%d): %s — retrying in %.1fs",
                    label, attempt, self.attempts, exc, delay,
                )
                self.sleep(delay)
                attempt += 1
