from __future__ import annotations

import pytest

from marketsync.domain.errors import LockContentionError
from marketsync.domain.leasing import entity_lease_key, hold_lease
from marketsync.domain.sweeps import SweepGuard, SweepSummary, fan_out
from tests.helpers.governance import FrozenClock, InMemoryLeaseManager


def test_fan_out_isolates_failures_and_counts_contention() -> None:
    def process(entity_id: str) -> str | None:
        if entity_id == "busy":
            raise LockContentionError(entity_lease_key(entity_id))
        if entity_id == "broken":
            raise RuntimeError("boom")
        if entity_id == "idle":
            return None
        return "done"

    summary = fan_out(
        SweepSummary(name="test"),
        ["a", "busy", "broken", "idle", "b"],
        process,
        max_workers=3,
    )

    assert summary.processed == 2
    assert summary.skipped == 1
    assert summary.failed == 1
    assert summary.outcomes["a"] == "done"
    assert summary.outcomes["broken"].startswith("failed")
    assert "idle" not in summary.outcomes


def test_fan_out_with_no_entities() -> None:
    summary = fan_out(SweepSummary(name="empty"), [], lambda _: "x", max_workers=4)

    assert summary.processed == 0
    assert str(summary) == "empty: processed=0 skipped=0 failed=0"


def test_sweep_guard_is_non_blocking() -> None:
    guard = SweepGuard("sweep")

    assert guard.try_enter()
    assert guard.running
    assert not guard.try_enter()
    guard.exit()
    assert guard.try_enter()


def test_hold_lease_releases_on_error() -> None:
    leases = InMemoryLeaseManager(FrozenClock())

    with pytest.raises(RuntimeError), hold_lease(leases, "entity:a", "me", 60):
        raise RuntimeError("inside")

    assert leases.released == ["entity:a"]
    assert leases.acquire("entity:a", "other", 60) is not None


def test_hold_lease_raises_on_contention() -> None:
    leases = InMemoryLeaseManager(FrozenClock())
    leases.hold("entity:a")

    with pytest.raises(LockContentionError), hold_lease(leases, "entity:a", "me", 60):
        pytest.fail("lease should not be granted")
