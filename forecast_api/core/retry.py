"""Retry with exponential backoff for upstream calls."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to call, and how long to wait between calls.

    The delay before attempt k (k >= 2) is
    min(initial_delay * backoff_factor ** (k - 2), max_delay).

    Attributes:
        max_attempts: Total calls including the first
        initial_delay: Seconds before the second attempt
        backoff_factor: Multiplier applied to the delay per attempt
        max_delay: Upper bound on any single delay
        sleep: Sleep function (injectable for tests)
    """

    max_attempts: int = 3
    initial_delay: float = 1.0
    backoff_factor: float = 2.0
    max_delay: float = 30.0
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("Retry delays must be >= 0")

    def delay_before(self, attempt: int) -> float:
        """Seconds to wait before the given 1-based attempt."""
        if attempt <= 1:
            return 0.0
        return min(self.initial_delay * self.backoff_factor ** (attempt - 2), self.max_delay)

    def call(
        self,
        fn: Callable[[], T],
        *,
        retry_on: tuple[type[BaseException], ...] = (Exception,),
        give_up_on: tuple[type[BaseException], ...] = (),
        label: str = "call",
    ) -> T:
        """Call fn until it succeeds or attempts run out.

        Exceptions matching give_up_on propagate immediately; exceptions
        matching retry_on are retried; the last one is re-raised.
        """
        for attempt in range(1, self.max_attempts + 1):
            delay = self.delay_before(attempt)
            if delay > 0:
                self.sleep(delay)
            try:
                return fn()
            except give_up_on:
                raise
            except retry_on as e:
                if attempt == self.max_attempts:
                    raise
                logger.warning(f"{label} failed (attempt {attempt}/{self.max_attempts}): {type(e).__name__}: {e}")
        raise AssertionError("unreachable")
