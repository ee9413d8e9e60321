"""Ledger RPC configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_float, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

LEDGER_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True)
class LedgerConfig:
    """Holds ledger RPC configuration values.

    ``authority_key`` is the service authority's Ed25519 secret, either as a
    base64 seed or as a JSON byte array (keypair file format).
    """

    rpc_url: str
    program_address: str
    authority_key: str
    read_resilience: ResilienceConfig
    submit_resilience: ResilienceConfig


def get_ledger_config(*, timeout_seconds: float | None = None) -> LedgerConfig:
    values = require_env_vars(("LEDGER_RPC_URL", "LEDGER_PROGRAM_ADDRESS", "LEDGER_AUTHORITY_KEY"))
    timeout = timeout_seconds or env_float(
        "LEDGER_TIMEOUT_SECONDS", LEDGER_TIMEOUT_SECONDS, minimum=0.1
    )
    ratelimit = RateLimit(max_calls=20, per_seconds=1.0)
    return LedgerConfig(
        rpc_url=values["LEDGER_RPC_URL"],
        program_address=values["LEDGER_PROGRAM_ADDRESS"],
        authority_key=values["LEDGER_AUTHORITY_KEY"],
        read_resilience=ResilienceConfig(
            name="ledger-read",
            base_url=values["LEDGER_RPC_URL"],
            timeout_seconds=timeout,
            ratelimit=ratelimit,
        ),
        submit_resilience=ResilienceConfig(
            name="ledger-submit",
            base_url=values["LEDGER_RPC_URL"],
            timeout_seconds=timeout,
            retry=RetryPolicy(total=0),
            ratelimit=ratelimit,
        ),
    )
