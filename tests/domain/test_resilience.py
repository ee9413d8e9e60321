from __future__ import annotations

import pytest

from marketsync.domain.errors import (
    CircuitOpenError,
    PersistentLedgerError,
    TransientLedgerError,
)
from marketsync.domain.resilience import (
    BackoffPolicy,
    CircuitBreaker,
    CircuitState,
    retry_transient,
)


class FakeMonotonic:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _failing(*errors: Exception, result: str = "ok"):
    pending = list(errors)
    calls: list[int] = []

    def func() -> str:
        calls.append(1)
        if pending:
            raise pending.pop(0)
        return result

    return func, calls


def test_backoff_delays_are_capped() -> None:
    policy = BackoffPolicy(attempts=6, base_delay=1.0, factor=2.0, max_delay=10.0)

    assert [policy.delay(n) for n in range(5)] == [1.0, 2.0, 4.0, 8.0, 10.0]


def test_retry_transient_retries_until_success() -> None:
    sleeps: list[float] = []
    func, calls = _failing(TransientLedgerError("a"), TransientLedgerError("b"))

    result = retry_transient(func, BackoffPolicy(), sleep=sleeps.append)

    assert result == "ok"
    assert len(calls) == 3
    assert sleeps == [1.0, 2.0]


def test_retry_transient_reraises_after_exhaustion() -> None:
    sleeps: list[float] = []
    func, calls = _failing(*(TransientLedgerError(str(n)) for n in range(5)))

    with pytest.raises(TransientLedgerError, match="2"):
        retry_transient(func, BackoffPolicy(attempts=3), sleep=sleeps.append)

    assert len(calls) == 3
    assert sleeps == [1.0, 2.0]


def test_retry_transient_does_not_retry_persistent_errors() -> None:
    func, calls = _failing(PersistentLedgerError("rejected"))

    with pytest.raises(PersistentLedgerError):
        retry_transient(func, BackoffPolicy(), sleep=lambda _: None)

    assert len(calls) == 1


def test_breaker_opens_after_threshold_and_short_circuits() -> None:
    clock = FakeMonotonic()
    breaker = CircuitBreaker(failure_threshold=3, reset_timeout=300, monotonic=clock)
    func, calls = _failing(*(TransientLedgerError("down") for _ in range(3)))

    for _ in range(3):
        with pytest.raises(TransientLedgerError):
            breaker.call(func, failure_types=(TransientLedgerError,))

    assert breaker.state is CircuitState.OPEN
    with pytest.raises(CircuitOpenError):
        breaker.call(func)
    assert len(calls) == 3


def test_half_open_allows_exactly_one_trial() -> None:
    clock = FakeMonotonic()
    breaker = CircuitBreaker(failure_threshold=1, reset_timeout=300, monotonic=clock)
    breaker.record_failure()
    assert breaker.state is CircuitState.OPEN

    clock.now += 300

    assert breaker.state is CircuitState.HALF_OPEN
    assert breaker.should_allow_request()
    assert not breaker.should_allow_request()


def test_half_open_success_closes() -> None:
    clock = FakeMonotonic()
    breaker = CircuitBreaker(failure_threshold=1, reset_timeout=300, monotonic=clock)
    breaker.record_failure()
    clock.now += 301

    assert breaker.call(lambda: "signed") == "signed"
    assert breaker.state is CircuitState.CLOSED
    assert breaker.consecutive_failures == 0


def test_half_open_failure_reopens_with_fresh_cool_down() -> None:
    clock = FakeMonotonic()
    breaker = CircuitBreaker(failure_threshold=3, reset_timeout=300, monotonic=clock)
    for _ in range(3):
        breaker.record_failure()
    clock.now += 300
    func, _ = _failing(TransientLedgerError("still down"))

    with pytest.raises(TransientLedgerError):
        breaker.call(func, failure_types=(TransientLedgerError,))

    assert breaker.state is CircuitState.OPEN
    clock.now += 299
    assert breaker.state is CircuitState.OPEN
    clock.now += 1
    assert breaker.state is CircuitState.HALF_OPEN


def test_non_failure_exceptions_count_as_success() -> None:
    breaker = CircuitBreaker(failure_threshold=2, monotonic=FakeMonotonic())
    breaker.record_failure()
    func, _ = _failing(PersistentLedgerError("rejected"))

    with pytest.raises(PersistentLedgerError):
        breaker.call(func, failure_types=(TransientLedgerError,))

    assert breaker.consecutive_failures == 0
    assert breaker.state is CircuitState.CLOSED
