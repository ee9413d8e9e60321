"""Bounded retry and a circuit breaker for ledger calls."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from marketsync.domain.errors import CircuitOpenError, TransientLedgerError

if TYPE_CHECKING:
    from collections.abc import Callable

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BackoffPolicy:
    """Exponential backoff: ``base * factor**n`` seconds, capped at ``max_delay``."""

    attempts: int = 3
    base_delay: float = 1.0
    factor: float = 2.0
    max_delay: float = 10.0

    def delay(self, retry_number: int) -> float:
        return min(self.base_delay * self.factor**retry_number, self.max_delay)


def retry_transient[T](
    func: Callable[[], T],
    policy: BackoffPolicy,
    *,
    sleep: Callable[[float], None] = time.sleep,
    label: str = "ledger call",
) -> T:
    """Call ``func`` until it succeeds or ``policy.attempts`` are used up.

    Only ``TransientLedgerError`` is retried; anything else propagates at once.
    The last transient error is re-raised on exhaustion.
    """

    attempts = max(policy.attempts, 1)
    for attempt in range(attempts):
        try:
            return func()
        except TransientLedgerError as exc:
            if attempt + 1 >= attempts:
                log.warning("%s failed after %d attempts: %s", label, attempts, exc)
                raise
            wait = policy.delay(attempt)
            log.info(
                "%s failed (attempt %d/%d), retrying in %.1fs: %s",
                label,
                attempt + 1,
                attempts,
                wait,
                exc,
            )
            sleep(wait)
    raise AssertionError("unreachable")  # pragma: no cover


class CircuitState(StrEnum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Consecutive-failure circuit breaker.

    Opens after ``failure_threshold`` consecutive failures and stays open for
    ``reset_timeout`` seconds. Afterwards exactly one trial call is let through
    (half-open); its success closes the breaker, its failure reopens it with a
    fresh cool-down. Thread safe.
    """

    def __init__(
        self,
        *,
        failure_threshold: int = 3,
        reset_timeout: float = 300.0,
        name: str = "ledger",
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self._monotonic = monotonic
        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._opened_at: float | None = None
        self._trial_in_flight = False

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._current_state()

    @property
    def consecutive_failures(self) -> int:
        return self._failures

    def _current_state(self) -> CircuitState:
        if (
            self._state is CircuitState.OPEN
            and self._opened_at is not None
            and self._monotonic() - self._opened_at >= self.reset_timeout
        ):
            self._state = CircuitState.HALF_OPEN
            self._trial_in_flight = False
        return self._state

    def should_allow_request(self) -> bool:
        with self._lock:
            state = self._current_state()
            if state is CircuitState.CLOSED:
                return True
            if state is CircuitState.HALF_OPEN and not self._trial_in_flight:
                self._trial_in_flight = True
                return True
            return False

    def record_success(self) -> None:
        with self._lock:
            if self._state is not CircuitState.CLOSED:
                log.info("Circuit %s closed", self.name)
            self._state = CircuitState.CLOSED
            self._failures = 0
            self._opened_at = None
            self._trial_in_flight = False

    def record_failure(self) -> None:
        with self._lock:
            self._failures += 1
            state = self._current_state()
            if state is CircuitState.HALF_OPEN or self._failures >= self.failure_threshold:
                if state is not CircuitState.OPEN:
                    log.warning(
                        "Circuit %s opened after %d consecutive failures",
                        self.name,
                        self._failures,
                    )
                self._state = CircuitState.OPEN
                self._opened_at = self._monotonic()
                self._trial_in_flight = False

    def call[T](
        self,
        func: Callable[[], T],
        *,
        failure_types: tuple[type[BaseException], ...] = (Exception,),
    ) -> T:
        """Run ``func`` through the breaker.

        Raises ``CircuitOpenError`` without invoking ``func`` while open.
        Exceptions matching ``failure_types`` count as failures; any other
        exception means the remote side answered and counts as a success.
        Both propagate.
        """

        if not self.should_allow_request():
            raise CircuitOpenError(f"Circuit {self.name} is open")
        try:
            result = func()
        except failure_types:
            self.record_failure()
            raise
        except Exception:
            self.record_success()
            raise
        self.record_success()
        return result
