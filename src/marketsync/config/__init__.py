"""Application configuration helpers."""

from __future__ import annotations

from .alerting import AlertingConfig, get_alerting_config
from .env import env_bool, env_float, env_int, env_str, require_env_vars
from .errors import ConfigurationError, InvalidConfigurationError, MissingConfigurationError
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
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .ledger import LedgerConfig, get_ledger_config
from .logging import configure_logging, get_log_level
from .settings import Settings, get_settings
from .storage import (
    DatabaseConfig,
    RedisConfig,
    StorageConfig,
    get_database_config,
    get_redis_config,
    get_storage_config,
)
from .webhook import SIGNATURE_HEADER, WebhookConfig, get_webhook_config

__all__ = [
    "SIGNATURE_HEADER",
    "AlertingConfig",
    "BackoffConfig",
    "CircuitBreakerConfig",
    "ConfigurationError",
    "DatabaseConfig",
    "GovernanceConfig",
    "InvalidConfigurationError",
    "LedgerConfig",
    "MissingConfigurationError",
    "RateLimit",
    "RedisConfig",
    "ResilienceConfig",
    "RetryPolicy",
    "Settings",
    "StorageConfig",
    "SweepConfig",
    "WebhookConfig",
    "configure_logging",
    "env_bool",
    "env_float",
    "env_int",
    "env_str",
    "get_alerting_config",
    "get_backoff_config",
    "get_circuit_breaker_config",
    "get_database_config",
    "get_governance_config",
    "get_ledger_config",
    "get_log_level",
    "get_redis_config",
    "get_settings",
    "get_storage_config",
    "get_sweep_config",
    "get_webhook_config",
    "require_env_vars",
]
