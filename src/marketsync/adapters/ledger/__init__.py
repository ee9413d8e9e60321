"""Public interface for the ledger adapter."""

from __future__ import annotations

from .client import HttpLedgerClient, build_http_ledger_client
from .schema import JsonRpcResponse, MarketAccountPayload, PositionPayload
from .signing import AuthoritySigner, canonical_json_bytes
from .translator import parse_account_state

__all__ = [
    "AuthoritySigner",
    "HttpLedgerClient",
    "JsonRpcResponse",
    "MarketAccountPayload",
    "PositionPayload",
    "build_http_ledger_client",
    "canonical_json_bytes",
    "parse_account_state",
]
