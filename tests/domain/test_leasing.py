from __future__ import annotations

import pytest

from marketsync.domain.errors import LockContentionError
from marketsync.domain.leasing import entity_lease_key, hold_lease
from tests.helpers.governance import FrozenClock, InMemoryLeaseManager


def test_lease_is_released_after_block() -> None:
    leases = InMemoryLeaseManager(FrozenClock())

    with hold_lease(leases, entity_lease_key("m1"), "worker-a", 60) as lease:
        assert lease.holder == "worker-a"
        assert lease.resource_key == "entity:m1"

    assert leases.released == ["entity:m1"]
    assert leases.leases == {}


def test_lease_is_released_when_block_fails() -> None:
    leases = InMemoryLeaseManager(FrozenClock())

    with pytest.raises(RuntimeError), hold_lease(leases, "entity:m1", "worker-a", 60):
        raise RuntimeError("boom")

    assert leases.released == ["entity:m1"]


def test_contention_raises() -> None:
    leases = InMemoryLeaseManager(FrozenClock())
    leases.hold("entity:m1")

    with pytest.raises(LockContentionError) as exc, hold_lease(leases, "entity:m1", "me", 60):
        pass

    assert exc.value.resource_key == "entity:m1"
    assert leases.released == []
