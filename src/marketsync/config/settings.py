"""All configuration for one process, loaded in one place."""

from __future__ import annotations

from dataclasses import dataclass

from .alerting import AlertingConfig, get_alerting_config
from .governance import (
    BackoffConfig,
    CircuitBreakerConfig,
    GovernanceConfig,
    SweepConfig,
    get_backoff_config,
    get_circuit_breaker_config,
    get_governance_config,
    get_sweep_config,
)
from .ledger import LedgerConfig, get_ledger_config
from .storage import DatabaseConfig, RedisConfig, get_database_config, get_redis_config
from .webhook import WebhookConfig, get_webhook_config


@dataclass(frozen=True)
class Settings:
    governance: GovernanceConfig
    sweeps: SweepConfig
    backoff: BackoffConfig
    circuit_breaker: CircuitBreakerConfig
    ledger: LedgerConfig
    database: DatabaseConfig
    redis: RedisConfig
    alerting: AlertingConfig
    webhook: WebhookConfig | None = None


def get_settings(*, with_webhook: bool = False) -> Settings:
    """Load every section from the environment.

    The webhook section (and its required secret) is only loaded for processes
    that serve the inbound endpoint.
    """

    return Settings(
        governance=get_governance_config(),
        sweeps=get_sweep_config(),
        backoff=get_backoff_config(),
        circuit_breaker=get_circuit_breaker_config(),
        ledger=get_ledger_config(),
        database=get_database_config(),
        redis=get_redis_config(),
        alerting=get_alerting_config(),
        webhook=get_webhook_config() if with_webhook else None,
    )
