"""Translate ledger RPC payloads into domain values."""

from __future__ import annotations

from marketsync.domain.errors import PersistentLedgerError
from marketsync.domain.model import EntityState, Outcome
from marketsync.domain.ports.ledger import LedgerAccountState

from .schema import MarketAccountPayload


def _outcome(value: str | None) -> Outcome | None:
    if value is None:
        return None
    try:
        return Outcome(value)
    except ValueError as exc:
        raise PersistentLedgerError(f"Unknown outcome from ledger: {value!r}") from exc


def parse_account_state(payload: MarketAccountPayload) -> LedgerAccountState:
    try:
        state = EntityState(payload.state)
    except ValueError as exc:
        raise PersistentLedgerError(f"Unknown market state from ledger: {payload.state!r}") from exc
    return LedgerAccountState(
        entity_id=payload.market,
        state=state,
        slot=payload.slot,
        proposed_outcome=_outcome(payload.proposed_outcome),
        final_outcome=_outcome(payload.final_outcome),
    )
