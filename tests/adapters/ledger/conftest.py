from __future__ import annotations

import httpx
import pytest

from marketsync.adapters.http_resilience import ResilientClient
from marketsync.adapters.ledger import AuthoritySigner, HttpLedgerClient
from marketsync.config import LedgerConfig, ResilienceConfig, RetryPolicy
from tests.helpers.governance import PROGRAM_ADDRESS
from tests.helpers.ledger_rpc import RPC_URL, RpcRecorder


@pytest.fixture
def rpc() -> RpcRecorder:
    return RpcRecorder()


@pytest.fixture
def ledger_client(rpc: RpcRecorder) -> HttpLedgerClient:
    no_retry = RetryPolicy(total=0)
    config = LedgerConfig(
        rpc_url=RPC_URL,
        program_address=PROGRAM_ADDRESS,
        authority_key="unused",
        read_resilience=ResilienceConfig(name="ledger-read", retry=no_retry),
        submit_resilience=ResilienceConfig(name="ledger-submit", retry=no_retry),
    )
    return HttpLedgerClient(
        config=config,
        signer=AuthoritySigner.generate(),
        client_factory=lambda cfg: ResilientClient(cfg, transport=httpx.MockTransport(rpc)),
    )
