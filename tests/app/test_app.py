from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from marketsync.adapters.notifications import LoggingAlerter, LoggingPublisher
from marketsync.adapters.tally import InMemoryTallyStore
from marketsync.app import SWEEP_NAMES, build_scheduler, build_services
from marketsync.config import (
    AlertingConfig,
    BackoffConfig,
    CircuitBreakerConfig,
    DatabaseConfig,
    GovernanceConfig,
    LedgerConfig,
    RedisConfig,
    ResilienceConfig,
    Settings,
    SweepConfig,
)
from marketsync.domain.model import EntityState
from tests.helpers.governance import PROGRAM_ADDRESS, make_entity, store_entities

if TYPE_CHECKING:
    from collections.abc import Iterator

    from marketsync.adapters.sqlalchemy import Database
    from marketsync.app import Services
    from tests.helpers.governance import FakeLedger


def _settings(database_uri: str) -> Settings:
    return Settings(
        governance=GovernanceConfig(),
        sweeps=SweepConfig(aggregation_interval_seconds=300.0),
        backoff=BackoffConfig(),
        circuit_breaker=CircuitBreakerConfig(failure_threshold=5),
        ledger=LedgerConfig(
            rpc_url="https://rpc.example.test",
            program_address=PROGRAM_ADDRESS,
            authority_key="unused",
            read_resilience=ResilienceConfig(name="ledger-read"),
            submit_resilience=ResilienceConfig(name="ledger-submit"),
        ),
        database=DatabaseConfig(uri=database_uri),
        redis=RedisConfig(),
        alerting=AlertingConfig(),
    )


@pytest.fixture
def services(database: Database, ledger: FakeLedger) -> Iterator[Services]:
    built = build_services(_settings(str(database.engine.url)), database=database, ledger=ledger)
    try:
        yield built
    finally:
        built.close()


def test_local_services_without_redis_or_alert_webhook(services: Services) -> None:
    assert isinstance(services.tally_store, InMemoryTallyStore)
    assert isinstance(services.publisher, LoggingPublisher)
    assert isinstance(services.alerter, LoggingAlerter)
    assert services.monitor.breaker.failure_threshold == 5
    assert services.aggregator.policy.proposal_threshold_bps == 7000


def test_run_sweep_dispatches_by_name(
    services: Services, database: Database, ledger: FakeLedger
) -> None:
    store_entities(database.unit_of_work, [make_entity("m1", EntityState.ACTIVE)])
    ledger.set_account("m1", EntityState.ACTIVE)

    summary = services.run_sweep("reconciliation")

    assert summary.outcomes == {"m1": "in_sync"}
    assert services.run_sweep("pending-events") == 0
    with pytest.raises(ValueError, match="Unknown sweep"):
        services.run_sweep("everything")


def test_every_sweep_is_scheduled(services: Services) -> None:
    scheduler = build_scheduler(services, SweepConfig(aggregation_interval_seconds=300.0))

    tasks = scheduler.tasks
    assert tuple(tasks) == SWEEP_NAMES
    assert tasks["proposals"].initial_delay == 0
    assert tasks["disputes"].initial_delay == 150.0
    assert tasks["lifecycle"].interval == 60.0
