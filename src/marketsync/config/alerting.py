"""Where operator alerts are delivered."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_float, env_str


@dataclass(frozen=True, slots=True)
class AlertingConfig:
    """``webhook_url=None`` keeps alerts in the log only."""

    webhook_url: str | None = None
    timeout_seconds: float = 5.0


def get_alerting_config() -> AlertingConfig:
    return AlertingConfig(
        webhook_url=env_str("ALERT_WEBHOOK_URL"),
        timeout_seconds=env_float("ALERT_TIMEOUT_SECONDS", 5.0, minimum=0.1),
    )
