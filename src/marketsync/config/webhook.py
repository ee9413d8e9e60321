"""Inbound ledger notification endpoint settings."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_int, env_str, require_env_vars

SIGNATURE_HEADER = "X-Ledger-Signature"


@dataclass(frozen=True, slots=True)
class WebhookConfig:
    secret: str
    host: str = "127.0.0.1"
    port: int = 8080
    queue_size: int = 10_000


def get_webhook_config() -> WebhookConfig:
    values = require_env_vars(("WEBHOOK_SECRET",))
    return WebhookConfig(
        secret=values["WEBHOOK_SECRET"],
        host=env_str("WEBHOOK_HOST", "127.0.0.1") or "127.0.0.1",
        port=env_int("WEBHOOK_PORT", 8080, minimum=1, maximum=65535),
        queue_size=env_int("WEBHOOK_QUEUE_SIZE", 10_000, minimum=1),
    )
