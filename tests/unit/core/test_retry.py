"""Unit tests for bounded retry."""

from __future__ import annotations

import threading
import time

import pytest

from core.retry import RetryPolicy, call_with_retry


class _Flaky:
    def __init__(self, failures: int, error: Exception) -> None:
        self.failures = failures
        self.error = error
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "ok"


def test_retries_until_success() -> None:
    """Retryable errors below the attempt budget should be absorbed."""
    sleeps: list[float] = []
    operation = _Flaky(failures=2, error=ConnectionError("down"))
    policy = RetryPolicy(max_attempts=3, initial_delay_s=0.5, jitter=False)

    result = call_with_retry(
        operation, lambda error: isinstance(error, ConnectionError), policy, sleep=sleeps.append
    )

    assert result == "ok" and sleeps == [0.5, 1.0]


def test_raises_last_error_when_exhausted() -> None:
    """The final error should propagate once attempts run out."""
    operation = _Flaky(failures=5, error=ConnectionError("down"))
    policy = RetryPolicy(max_attempts=3, initial_delay_s=0.0, jitter=False)

    with pytest.raises(ConnectionError):
        call_with_retry(operation, lambda error: True, policy, sleep=lambda delay: None)

    assert operation.calls == 3


def test_non_retryable_error_is_not_retried() -> None:
    """Errors rejected by the predicate should propagate immediately."""
    operation = _Flaky(failures=1, error=ValueError("bad"))

    with pytest.raises(ValueError):
        call_with_retry(operation, lambda error: False, RetryPolicy(), sleep=lambda delay: None)

    assert operation.calls == 1


def test_delay_is_capped_and_jitter_stays_in_range() -> None:
    """Backoff should never exceed the configured maximum."""
    capped = RetryPolicy(initial_delay_s=1.0, max_delay_s=3.0, jitter=False)
    jittered = RetryPolicy(initial_delay_s=1.0, max_delay_s=3.0, jitter=True)

    assert capped.delay_for(5) == 3.0 and 0.0 <= jittered.delay_for(5) <= 3.0


def test_policy_rejects_zero_attempts() -> None:
    """A policy must allow at least one attempt."""
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)

    assert True


def test_stop_event_prevents_further_attempts() -> None:
    """Once the stop event is set, the current error should propagate at once."""
    stop_event = threading.Event()
    operation = _Flaky(failures=5, error=ConnectionError("down"))

    def _fail_and_stop() -> str:
        stop_event.set()
        return operation()

    policy = RetryPolicy(max_attempts=5, initial_delay_s=30.0, jitter=False)
    with pytest.raises(ConnectionError):
        call_with_retry(_fail_and_stop, lambda error: True, policy, stop_event=stop_event)

    assert operation.calls == 1


def test_stop_event_ends_backoff_wait() -> None:
    """Setting the stop event during a backoff wait should end the retry loop."""
    stop_event = threading.Event()
    operation = _Flaky(failures=5, error=ConnectionError("down"))
    policy = RetryPolicy(max_attempts=5, initial_delay_s=30.0, jitter=False)
    timer = threading.Timer(0.1, stop_event.set)
    timer.start()
    started = time.monotonic()

    with pytest.raises(ConnectionError):
        call_with_retry(operation, lambda error: True, policy, stop_event=stop_event)

    assert operation.calls == 1 and time.monotonic() - started < 5.0
