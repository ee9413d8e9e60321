"""Voting thresholds, lifecycle windows and sweep cadence."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from .env import env_float, env_int

BPS_MAX = 10_000


@dataclass(frozen=True, slots=True)
class GovernanceConfig:
    proposal_threshold_bps: int = 7000
    dispute_threshold_bps: int = 6000
    min_votes_required: int = 1
    resolution_delay: timedelta = timedelta(hours=48)
    dispute_window: timedelta = timedelta(hours=72)
    stuck_window: timedelta = timedelta(days=30)
    voting_window: timedelta = timedelta(days=7)


@dataclass(frozen=True, slots=True)
class SweepConfig:
    aggregation_interval_seconds: float = 300.0
    lifecycle_interval_seconds: float = 60.0
    reconciliation_interval_seconds: float = 600.0
    pending_events_interval_seconds: float = 120.0
    max_workers: int = 4
    lease_ttl_seconds: float = 60.0


@dataclass(frozen=True, slots=True)
class BackoffConfig:
    attempts: int = 3
    base_delay_seconds: float = 1.0
    factor: float = 2.0
    max_delay_seconds: float = 10.0


@dataclass(frozen=True, slots=True)
class CircuitBreakerConfig:
    failure_threshold: int = 3
    cool_down_seconds: float = 300.0


def get_governance_config() -> GovernanceConfig:
    return GovernanceConfig(
        proposal_threshold_bps=env_int("PROPOSAL_THRESHOLD_BPS", 7000, minimum=0, maximum=BPS_MAX),
        dispute_threshold_bps=env_int("DISPUTE_THRESHOLD_BPS", 6000, minimum=0, maximum=BPS_MAX),
        min_votes_required=env_int("MIN_VOTES_REQUIRED", 1, minimum=1),
        resolution_delay=timedelta(hours=env_float("RESOLUTION_DELAY_HOURS", 48.0, minimum=0)),
        dispute_window=timedelta(hours=env_float("DISPUTE_WINDOW_HOURS", 72.0, minimum=0)),
        stuck_window=timedelta(days=env_float("STUCK_WINDOW_DAYS", 30.0, minimum=0)),
        voting_window=timedelta(days=env_float("VOTING_WINDOW_DAYS", 7.0, minimum=0)),
    )


def get_sweep_config() -> SweepConfig:
    return SweepConfig(
        aggregation_interval_seconds=env_float(
            "AGGREGATION_INTERVAL_SECONDS", 300.0, minimum=1
        ),
        lifecycle_interval_seconds=env_float("LIFECYCLE_INTERVAL_SECONDS", 60.0, minimum=1),
        reconciliation_interval_seconds=env_float(
            "RECONCILIATION_INTERVAL_SECONDS", 600.0, minimum=1
        ),
        pending_events_interval_seconds=env_float(
            "PENDING_EVENTS_INTERVAL_SECONDS", 120.0, minimum=1
        ),
        max_workers=env_int("SWEEP_MAX_WORKERS", 4, minimum=1),
        lease_ttl_seconds=env_float("LEASE_TTL_SECONDS", 60.0, minimum=1),
    )


def get_backoff_config() -> BackoffConfig:
    return BackoffConfig(
        attempts=env_int("LEDGER_RETRY_ATTEMPTS", 3, minimum=1),
        base_delay_seconds=env_float("LEDGER_RETRY_BASE_SECONDS", 1.0, minimum=0),
        factor=env_float("LEDGER_RETRY_FACTOR", 2.0, minimum=1),
        max_delay_seconds=env_float("LEDGER_RETRY_MAX_SECONDS", 10.0, minimum=0),
    )


def get_circuit_breaker_config() -> CircuitBreakerConfig:
    return CircuitBreakerConfig(
        failure_threshold=env_int("CIRCUIT_FAILURE_THRESHOLD", 3, minimum=1),
        cool_down_seconds=env_float("CIRCUIT_COOL_DOWN_SECONDS", 300.0, minimum=0),
    )
