from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from tests.helpers.governance import EPOCH, FrozenClock

if TYPE_CHECKING:
    from marketsync.adapters.sqlalchemy import Database, SqlAlchemyLeaseManager


@pytest.fixture
def lease_clock() -> FrozenClock:
    return FrozenClock(EPOCH)


@pytest.fixture
def lease_manager(database: Database, lease_clock: FrozenClock) -> SqlAlchemyLeaseManager:
    return database.lease_manager(clock=lease_clock)


def test_acquire_and_release(lease_manager: SqlAlchemyLeaseManager) -> None:
    lease = lease_manager.acquire("entity:m1", "worker-a", 60)

    assert lease is not None
    assert lease.holder == "worker-a"
    assert lease_manager.acquire("entity:m1", "worker-b", 60) is None
    assert not lease_manager.release("entity:m1", "worker-b")
    assert lease_manager.release("entity:m1", "worker-a")
    assert lease_manager.acquire("entity:m1", "worker-b", 60) is not None


def test_leases_are_not_reentrant(lease_manager: SqlAlchemyLeaseManager) -> None:
    assert lease_manager.acquire("entity:m1", "worker-a", 60) is not None
    assert lease_manager.acquire("entity:m1", "worker-a", 60) is None


def test_expired_lease_can_be_taken_over(
    lease_manager: SqlAlchemyLeaseManager, lease_clock: FrozenClock
) -> None:
    assert lease_manager.acquire("entity:m1", "worker-a", 60) is not None
    lease_clock.advance(seconds=61)

    taken = lease_manager.acquire("entity:m1", "worker-b", 60)

    assert taken is not None
    assert taken.holder == "worker-b"
    assert not lease_manager.release("entity:m1", "worker-a")


def test_renew_only_by_live_holder(
    lease_manager: SqlAlchemyLeaseManager, lease_clock: FrozenClock
) -> None:
    lease_manager.acquire("entity:m1", "worker-a", 60)

    assert lease_manager.renew("entity:m1", "worker-a", 60)
    assert not lease_manager.renew("entity:m1", "worker-b", 60)

    lease_clock.advance(seconds=59)
    assert lease_manager.acquire("entity:m1", "worker-b", 60) is None

    lease_clock.advance(seconds=61)
    assert not lease_manager.renew("entity:m1", "worker-a", 60)
