"""JSON-RPC client for the ledger node."""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from marketsync.adapters.http_resilience import ResilienceConfig, ResilientClient
from marketsync.domain.errors import PersistentLedgerError, TransientLedgerError

from .schema import JsonRpcResponse, MarketAccountPayload, PositionPayload, SendInstructionResult
from .signing import AuthoritySigner
from .translator import parse_account_state

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from marketsync.config import LedgerConfig
    from marketsync.domain.ports.ledger import LedgerAccountState

log = getLogger(__name__)

# JSON-RPC codes that mean "try again later" rather than "your request is wrong".
_INTERNAL_ERROR = -32603
_SERVER_ERROR_RANGE = range(-32099, -31999)


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


def _is_transient_rpc_error(code: int) -> bool:
    return code == _INTERNAL_ERROR or code in _SERVER_ERROR_RANGE


@dataclass(slots=True)
class HttpLedgerClient:
    """Synchronous ledger port backed by the async resilient HTTP client.

    Reads go through the transport retry layer. Submissions do not: their
    retries belong to the caller, which knows whether a retry is safe.
    """

    config: LedgerConfig
    signer: AuthoritySigner
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    _ids: itertools.count[int] = field(init=False, default_factory=lambda: itertools.count(1))

    @property
    def program_address(self) -> str:
        return self.config.program_address

    def submit_signed_instruction(
        self,
        program_address: str,
        instruction_id: str,
        accounts: Sequence[str],
        args: Mapping[str, Any],
    ) -> str:
        params = self.signer.signed_envelope(
            program=program_address,
            instruction=instruction_id,
            accounts=list(accounts),
            args=dict(args),
        )
        result = asyncio.run(
            self._call(self.config.submit_resilience, "sendInstruction", params)
        )
        try:
            signature = SendInstructionResult.model_validate(result).signature
        except ValidationError as exc:
            raise PersistentLedgerError(f"Malformed sendInstruction result: {exc}") from exc
        log.info("Submitted %s on %s: %s", instruction_id, ",".join(accounts), signature)
        return signature

    def read_account_state(self, entity_id: str) -> LedgerAccountState | None:
        result = asyncio.run(
            self._call(self.config.read_resilience, "getMarketAccount", {"market": entity_id})
        )
        if result is None:
            return None
        try:
            payload = MarketAccountPayload.model_validate(result)
        except ValidationError as exc:
            raise PersistentLedgerError(f"Malformed market account {entity_id}: {exc}") from exc
        return parse_account_state(payload)

    def read_position(self, entity_id: str, owner: str) -> int:
        result = asyncio.run(
            self._call(
                self.config.read_resilience,
                "getPosition",
                {"market": entity_id, "owner": owner},
            )
        )
        if result is None:
            return 0
        try:
            return PositionPayload.model_validate(result).shares
        except ValidationError as exc:
            raise PersistentLedgerError(f"Malformed position {entity_id}/{owner}: {exc}") from exc

    async def _call(
        self, resilience: ResilienceConfig, method: str, params: Mapping[str, Any]
    ) -> Any:
        request = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        async with self.client_factory(resilience) as client:
            try:
                response = await client.post(self.config.rpc_url, json=request)
            except httpx.TimeoutException as exc:
                raise TransientLedgerError(f"{method} timed out: {exc}") from exc
            except httpx.TransportError as exc:
                raise TransientLedgerError(f"{method} network error: {exc}") from exc

        status = response.status_code
        if status == httpx.codes.TOO_MANY_REQUESTS or status >= httpx.codes.INTERNAL_SERVER_ERROR:
            raise TransientLedgerError(f"{method} failed with HTTP {status}")
        if status >= httpx.codes.BAD_REQUEST:
            raise PersistentLedgerError(f"{method} rejected with HTTP {status}: {response.text}")

        try:
            envelope = JsonRpcResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise PersistentLedgerError(f"{method} returned a malformed response: {exc}") from exc

        if envelope.error is not None:
            error = envelope.error
            log.warning("Ledger %s error %d: %s", method, error.code, error.message)
            if _is_transient_rpc_error(error.code):
                raise TransientLedgerError(f"{method}: {error.message} ({error.code})")
            raise PersistentLedgerError(f"{method}: {error.message} ({error.code})")
        return envelope.result


def build_http_ledger_client(config: LedgerConfig) -> HttpLedgerClient:
    return HttpLedgerClient(config=config, signer=AuthoritySigner.from_secret(config.authority_key))
