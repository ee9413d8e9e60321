"""Recurring background tasks driving the periodic sweeps."""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

log = logging.getLogger(__name__)


class RecurringTask:
    """Runs ``func`` every ``interval`` seconds on its own thread.

    Ticks never overlap: a tick that finds the previous run still going is
    skipped. Exceptions are logged and the schedule carries on.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        func: Callable[[], Any],
        *,
        initial_delay: float = 0.0,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"Interval must be positive: {interval}")
        self.name = name
        self.interval = interval
        self.initial_delay = initial_delay
        self._func = func
        self._monotonic = monotonic
        self._running = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self.runs = 0
        self.failures = 0
        self.skipped = 0
        self.last_duration: float | None = None

    def run_once(self) -> bool:
        """Run one tick now. Returns ``False`` when the previous tick is still running."""

        if not self._running.acquire(blocking=False):
            self.skipped += 1
            log.warning("Task %s still running, skipping this tick", self.name)
            return False
        started = self._monotonic()
        try:
            self._func()
        except Exception:
            self.failures += 1
            log.exception("Task %s failed", self.name)
        finally:
            self.runs += 1
            self.last_duration = self._monotonic() - started
            self._running.release()
        return True

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name=f"task-{self.name}", daemon=True)
        self._thread.start()
        log.info(
            "Scheduled %s every %.0fs (first run in %.0fs)",
            self.name,
            self.interval,
            self.initial_delay,
        )

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _loop(self) -> None:
        next_run = self._monotonic() + self.initial_delay
        while not self._stop.wait(max(next_run - self._monotonic(), 0.0)):
            self.run_once()
            next_run += self.interval
            now = self._monotonic()
            if next_run <= now:
                missed = int((now - next_run) // self.interval) + 1
                log.warning("Task %s overran, skipping %d tick(s)", self.name, missed)
                self.skipped += missed
                next_run += missed * self.interval

    def status(self) -> dict[str, Any]:
        return {
            "interval": self.interval,
            "runs": self.runs,
            "failures": self.failures,
            "skipped": self.skipped,
            "last_duration": self.last_duration,
        }


class Scheduler:
    """Owns a set of named recurring tasks."""

    def __init__(self) -> None:
        self._tasks: dict[str, RecurringTask] = {}

    def add(
        self,
        name: str,
        interval: float,
        func: Callable[[], Any],
        *,
        initial_delay: float = 0.0,
    ) -> RecurringTask:
        if name in self._tasks:
            raise ValueError(f"Task {name!r} already registered")
        task = RecurringTask(name, interval, func, initial_delay=initial_delay)
        self._tasks[name] = task
        return task

    @property
    def tasks(self) -> dict[str, RecurringTask]:
        return dict(self._tasks)

    def start(self) -> None:
        for task in self._tasks.values():
            task.start()

    def stop(self, timeout: float | None = 10.0) -> None:
        for task in self._tasks.values():
            task.stop(timeout)
        log.info("Scheduler stopped")

    def status(self) -> dict[str, dict[str, Any]]:
        return {name: task.status() for name, task in self._tasks.items()}
