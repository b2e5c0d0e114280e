"""Bounded retry with exponential backoff.

Callers pass an explicit ``should_retry`` predicate so retry decisions are
made on typed errors, never on message text.
"""

from __future__ import annotations

from dataclasses import dataclass
import random
import threading
import time
from typing import Callable, TypeVar

from core.constants import (
    DEFAULT_INITIAL_RETRY_DELAY_S,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_RETRY_DELAY_S,
)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry policy with exponential backoff and optional jitter."""

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    initial_delay_s: float = DEFAULT_INITIAL_RETRY_DELAY_S
    backoff_multiplier: float = 2.0
    max_delay_s: float = DEFAULT_MAX_RETRY_DELAY_S
    jitter: bool = True  # "full jitter" when enabled

    def __post_init__(self) -> None:
        """Validate invariants to keep retry behavior predictable."""
        if self.max_attempts < 1:
            raise ValueError("RetryPolicy.max_attempts must be >= 1")
        if self.initial_delay_s < 0:
            raise ValueError("RetryPolicy.initial_delay_s must be >= 0")
        if self.backoff_multiplier <= 0:
            raise ValueError("RetryPolicy.backoff_multiplier must be > 0")
        if self.max_delay_s < 0:
            raise ValueError("RetryPolicy.max_delay_s must be >= 0")

    def delay_for(self, attempt: int) -> float:
        """Return the sleep before retrying after ``attempt`` (1-based) failed."""
        base_delay = self.initial_delay_s * (self.backoff_multiplier ** (attempt - 1))
        capped_delay = min(base_delay, self.max_delay_s)
        if self.jitter:
            return random.uniform(0.0, capped_delay)
        return capped_delay


def call_with_retry(
    operation: Callable[[], T],
    should_retry: Callable[[BaseException], bool],
    policy: RetryPolicy,
    sleep: Callable[[float], None] = time.sleep,
    on_retry: Callable[[int, BaseException, float], None] | None = None,
    stop_event: threading.Event | None = None,
) -> T:
    """Run ``operation`` until it succeeds or the policy is exhausted.

    Args:
        operation: Zero-argument callable to attempt.
        should_retry: Predicate deciding whether an error is retryable.
        policy: Attempt and backoff limits.
        sleep: Sleep function, injectable for tests.
        on_retry: Optional hook called with (attempt, error, delay) before sleeping.
        stop_event: Optional event that cuts the backoff wait short and
            prevents further attempts once set.

    Returns:
        The operation result.

    Raises:
        BaseException: The last error when it is not retryable, attempts run
            out, or ``stop_event`` is set.
    """
    attempt = 1
    while True:
        try:
            return operation()
        except Exception as error:
            if attempt >= policy.max_attempts or not should_retry(error):
                raise
            if stop_event is not None and stop_event.is_set():
                raise
            delay = policy.delay_for(attempt)
            if on_retry is not None:
                on_retry(attempt, error, delay)
            if stop_event is None:
                sleep(delay)
            elif stop_event.wait(delay):
                raise
            attempt += 1
