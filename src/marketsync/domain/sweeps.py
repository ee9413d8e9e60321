"""Shared machinery for periodic sweeps over entities."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from marketsync.domain.errors import LockContentionError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

log = logging.getLogger(__name__)


@dataclass(slots=True)
class SweepSummary:
    """Per-run counters plus a short outcome string per entity."""

    name: str
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    overlapped: bool = False
    outcomes: dict[str, str] = field(default_factory=dict)

    def record(self, entity_id: str, outcome: str) -> None:
        self.processed += 1
        self.outcomes[entity_id] = outcome

    def __str__(self) -> str:
        return (
            f"{self.name}: processed={self.processed} skipped={self.skipped} "
            f"failed={self.failed}"
        )


class SweepGuard:
    """Non-blocking run guard so a sweep never overlaps with itself."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._lock = threading.Lock()

    def try_enter(self) -> bool:
        return self._lock.acquire(blocking=False)

    def exit(self) -> None:
        self._lock.release()

    @property
    def running(self) -> bool:
        return self._lock.locked()


def fan_out(
    summary: SweepSummary,
    entity_ids: Iterable[str],
    process: Callable[[str], str | None],
    *,
    max_workers: int,
) -> SweepSummary:
    """Run ``process`` for each entity on a bounded pool and fold results in.

    ``process`` returns an outcome string, or ``None`` when nothing was due.
    Lease contention counts as skipped; any other exception is logged and
    counted as failed without touching the other entities.
    """

    def guarded(entity_id: str) -> tuple[str, str | None, BaseException | None]:
        try:
            return entity_id, process(entity_id), None
        except LockContentionError as exc:
            log.debug("%s: %s", summary.name, exc)
            return entity_id, "skipped", exc
        except Exception as exc:
            log.exception("%s: processing %s failed", summary.name, entity_id)
            return entity_id, "failed", exc

    ids = list(entity_ids)
    if not ids:
        return summary
    with ThreadPoolExecutor(
        max_workers=max(1, min(max_workers, len(ids))),
        thread_name_prefix=summary.name,
    ) as pool:
        results = list(pool.map(guarded, ids))

    for entity_id, outcome, error in results:
        if isinstance(error, LockContentionError):
            summary.skipped += 1
        elif error is not None:
            summary.failed += 1
            summary.outcomes[entity_id] = f"failed: {error}"
        elif outcome is not None:
            summary.record(entity_id, outcome)
    return summary
