from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

import pytest

from marketsync.adapters.sqlalchemy import Database
from marketsync.adapters.tally import InMemoryTallyStore
from tests.helpers.governance import (
    FakeLedger,
    FrozenClock,
    InMemoryLeaseManager,
    RecordingAlerter,
    RecordingPublisher,
)

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from marketsync.domain.ports import UnitOfWorkFactory


@pytest.fixture
def database(tmp_path: Path) -> Iterator[Database]:
    # file backed so that sweep worker threads share one database
    db = Database(uri=f"sqlite+pysqlite:///{tmp_path / 'marketsync.db'}")
    db.startup()
    try:
        yield db
    finally:
        db.dispose()


@pytest.fixture
def uow_factory(database: Database) -> UnitOfWorkFactory:
    return database.unit_of_work


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def leases(clock: FrozenClock) -> InMemoryLeaseManager:
    return InMemoryLeaseManager(clock)


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def alerter() -> RecordingAlerter:
    return RecordingAlerter()


@pytest.fixture
def tally_store() -> InMemoryTallyStore:
    return InMemoryTallyStore(ttl=timedelta(days=7))
