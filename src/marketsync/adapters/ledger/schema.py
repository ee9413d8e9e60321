"""Pydantic models describing the ledger JSON-RPC payloads."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _lower(value: object) -> object:
    if isinstance(value, str):
        return value.strip().lower() or None
    return value


class LedgerBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class JsonRpcError(LedgerBaseModel):
    code: int
    message: str
    data: Any | None = None


class JsonRpcResponse(LedgerBaseModel):
    jsonrpc: Literal["2.0"] = "2.0"
    id: int | str | None = None
    result: Any | None = None
    error: JsonRpcError | None = None


class SendInstructionResult(LedgerBaseModel):
    signature: str = Field(min_length=1)


class MarketAccountPayload(LedgerBaseModel):
    market: str
    state: str
    slot: int = Field(ge=0)
    proposed_outcome: str | None = Field(default=None, alias="proposedOutcome")
    final_outcome: str | None = Field(default=None, alias="finalOutcome")

    _normalize_state = field_validator("state", mode="before")(_lower)
    _normalize_outcomes = field_validator("proposed_outcome", "final_outcome", mode="before")(
        _lower
    )


class PositionPayload(LedgerBaseModel):
    shares: int = Field(ge=0)

    @field_validator("shares", mode="before")
    @classmethod
    def _parse_int(cls, value: int | str) -> int:
        return int(value)
