"""Explicit wiring of adapters into the domain services."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

import redis

from marketsync.adapters.ledger import build_http_ledger_client
from marketsync.adapters.notifications import (
    LoggingAlerter,
    LoggingPublisher,
    RedisPublisher,
    WebhookAlerter,
)
from marketsync.adapters.sqlalchemy import Database
from marketsync.adapters.tally import InMemoryTallyStore, RedisTallyStore
from marketsync.adapters.webhook import EventQueueWorker, create_app, decode_event
from marketsync.domain.clock import utcnow
from marketsync.domain.indexing import EventIndexer, Reconciler
from marketsync.domain.lifecycle import LifecycleMonitor, LifecyclePolicy
from marketsync.domain.resilience import BackoffPolicy, CircuitBreaker
from marketsync.domain.voting import VoteAggregator, VotingPolicy
from marketsync.scheduling import Scheduler

if TYPE_CHECKING:
    from fastapi import FastAPI

    from marketsync.config import (
        BackoffConfig,
        CircuitBreakerConfig,
        GovernanceConfig,
        Settings,
        SweepConfig,
        WebhookConfig,
    )
    from marketsync.domain.clock import Clock
    from marketsync.domain.ports import Alerter, LedgerPort, Publisher, TallyStore
    from marketsync.domain.sweeps import SweepSummary

log = getLogger(__name__)

SWEEP_NAMES = ("proposals", "disputes", "lifecycle", "reconciliation", "pending-events")


def voting_policy(governance: GovernanceConfig, sweeps: SweepConfig) -> VotingPolicy:
    return VotingPolicy(
        proposal_threshold_bps=governance.proposal_threshold_bps,
        dispute_threshold_bps=governance.dispute_threshold_bps,
        min_votes_required=governance.min_votes_required,
        lease_ttl_seconds=sweeps.lease_ttl_seconds,
        max_workers=sweeps.max_workers,
    )


def lifecycle_policy(governance: GovernanceConfig, sweeps: SweepConfig) -> LifecyclePolicy:
    return LifecyclePolicy(
        resolution_delay=governance.resolution_delay,
        dispute_window=governance.dispute_window,
        stuck_window=governance.stuck_window,
        dispute_threshold_bps=governance.dispute_threshold_bps,
        min_votes_required=governance.min_votes_required,
        lease_ttl_seconds=sweeps.lease_ttl_seconds,
        max_workers=sweeps.max_workers,
    )


def backoff_policy(config: BackoffConfig) -> BackoffPolicy:
    return BackoffPolicy(
        attempts=config.attempts,
        base_delay=config.base_delay_seconds,
        factor=config.factor,
        max_delay=config.max_delay_seconds,
    )


def circuit_breaker(config: CircuitBreakerConfig) -> CircuitBreaker:
    return CircuitBreaker(
        failure_threshold=config.failure_threshold,
        reset_timeout=config.cool_down_seconds,
        name="ledger",
    )


@dataclass
class Services:
    """Everything one process needs, built once and closed on shutdown."""

    database: Database
    ledger: LedgerPort
    tally_store: TallyStore
    publisher: Publisher
    alerter: Alerter
    aggregator: VoteAggregator
    monitor: LifecycleMonitor
    indexer: EventIndexer
    reconciler: Reconciler
    _closers: list[object] = field(default_factory=list)

    def run_sweep(self, name: str) -> SweepSummary | int:
        """Run one named sweep synchronously (used by the CLI and the scheduler)."""

        match name:
            case "proposals":
                return self.aggregator.run_proposal_sweep()
            case "disputes":
                return self.aggregator.run_dispute_sweep()
            case "lifecycle":
                return self.monitor.run_sweep()
            case "reconciliation":
                return self.reconciler.run_sweep()
            case "pending-events":
                return self.indexer.process_pending()
            case _:
                raise ValueError(f"Unknown sweep {name!r}; expected one of {SWEEP_NAMES}")

    def close(self) -> None:
        for closer in self._closers:
            close = getattr(closer, "close", None)
            if callable(close):
                close()
        self.database.dispose()


def build_services(
    settings: Settings,
    *,
    database: Database | None = None,
    ledger: LedgerPort | None = None,
    clock: Clock = utcnow,
) -> Services:
    """Build the domain services from ``settings``.

    ``database`` and ``ledger`` may be injected (tests, one-off scripts); the
    rest follows the configuration: Redis when ``REDIS_URL`` is set, the
    in-process tally store and logging publisher otherwise.
    """

    if database is None:
        database = Database(uri=settings.database.uri, echo=settings.database.echo)
    if not database.is_started:
        database.startup()
    effective_ledger = ledger or build_http_ledger_client(settings.ledger)
    closers: list[object] = []

    tally_store: TallyStore
    publisher: Publisher
    if settings.redis.url:
        client = redis.Redis.from_url(settings.redis.url, decode_responses=True)
        closers.append(client)
        tally_store = RedisTallyStore(
            client, ttl=settings.governance.voting_window, key_prefix=settings.redis.key_prefix
        )
        publisher = RedisPublisher(client, key_prefix=settings.redis.key_prefix)
    else:
        log.info("REDIS_URL not set, using the in-process tally store")
        tally_store = InMemoryTallyStore(ttl=settings.governance.voting_window)
        publisher = LoggingPublisher()

    alerter: Alerter
    if settings.alerting.webhook_url:
        alerter = WebhookAlerter(
            settings.alerting.webhook_url, timeout_seconds=settings.alerting.timeout_seconds
        )
        closers.append(alerter)
    else:
        alerter = LoggingAlerter()

    leases = database.lease_manager(clock=clock)
    instance = uuid.uuid4().hex[:8]
    governance, sweeps = settings.governance, settings.sweeps

    aggregator = VoteAggregator(
        unit_of_work_factory=database.unit_of_work,
        ledger=effective_ledger,
        tally_store=tally_store,
        leases=leases,
        publisher=publisher,
        alerter=alerter,
        policy=voting_policy(governance, sweeps),
        backoff=backoff_policy(settings.backoff),
        clock=clock,
        holder=f"aggregator-{instance}",
    )
    monitor = LifecycleMonitor(
        unit_of_work_factory=database.unit_of_work,
        ledger=effective_ledger,
        leases=leases,
        publisher=publisher,
        alerter=alerter,
        breaker=circuit_breaker(settings.circuit_breaker),
        policy=lifecycle_policy(governance, sweeps),
        clock=clock,
        holder=f"lifecycle-{instance}",
    )
    indexer = EventIndexer(
        unit_of_work_factory=database.unit_of_work,
        decoder=decode_event,
        publisher=publisher,
        alerter=alerter,
        clock=clock,
    )
    reconciler = Reconciler(
        unit_of_work_factory=database.unit_of_work,
        ledger=effective_ledger,
        publisher=publisher,
        alerter=alerter,
        max_workers=sweeps.max_workers,
        clock=clock,
    )
    log.info(
        "Services ready: ledger program %s, thresholds %d/%d bps",
        effective_ledger.program_address,
        governance.proposal_threshold_bps,
        governance.dispute_threshold_bps,
    )
    return Services(
        database=database,
        ledger=effective_ledger,
        tally_store=tally_store,
        publisher=publisher,
        alerter=alerter,
        aggregator=aggregator,
        monitor=monitor,
        indexer=indexer,
        reconciler=reconciler,
        _closers=closers,
    )


def build_scheduler(services: Services, sweeps: SweepConfig) -> Scheduler:
    """Register every periodic sweep. The dispute sweep runs half an interval late."""

    scheduler = Scheduler()
    aggregation = sweeps.aggregation_interval_seconds
    scheduler.add("proposals", aggregation, services.aggregator.run_proposal_sweep)
    scheduler.add(
        "disputes",
        aggregation,
        services.aggregator.run_dispute_sweep,
        initial_delay=aggregation / 2,
    )
    scheduler.add("lifecycle", sweeps.lifecycle_interval_seconds, services.monitor.run_sweep)
    scheduler.add(
        "reconciliation", sweeps.reconciliation_interval_seconds, services.reconciler.run_sweep
    )
    scheduler.add(
        "pending-events", sweeps.pending_events_interval_seconds, services.indexer.process_pending
    )
    return scheduler


def build_webhook_app(services: Services, webhook: WebhookConfig) -> FastAPI:
    worker = EventQueueWorker(services.indexer, maxsize=webhook.queue_size)
    return create_app(indexer=services.indexer, worker=worker, secret=webhook.secret)
