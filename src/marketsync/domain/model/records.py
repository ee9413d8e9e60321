"""Vote, audit and coordination records kept in the durable store."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from marketsync.domain.model.enums import EntityState, Trigger, VoteType


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(eq=False, kw_only=True)
class VoteRecord:
    """One voter's vote in one round; unique per (entity, voter, vote type)."""

    entity_id: str
    voter_id: str
    vote_type: VoteType
    value: bool
    weight: int = 1
    created_at: datetime = field(default_factory=_utcnow)
    id: int | None = None


@dataclass(eq=False, kw_only=True)
class AggregationResult:
    """Append-only audit row written by every aggregation attempt."""

    entity_id: str
    vote_type: VoteType
    yes_count: int
    no_count: int
    percentage_bps: int
    threshold_bps: int
    threshold_met: bool
    ledger_tx_signature: str | None = None
    error: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
    id: int | None = None

    @property
    def submitted(self) -> bool:
        return self.ledger_tx_signature is not None


@dataclass(eq=False, kw_only=True)
class LedgerEvent:
    """Raw ledger notification; the transaction signature is the idempotency key."""

    transaction_signature: str
    slot: int
    event_type: str
    payload: dict[str, Any]
    entity_id: str | None = None
    block_time: datetime | None = None
    received_at: datetime = field(default_factory=_utcnow)
    processed_at: datetime | None = None
    error: str | None = None
    id: int | None = None

    @property
    def is_processed(self) -> bool:
        return self.processed_at is not None


@dataclass(eq=False, kw_only=True)
class ReconciliationDiscrepancy:
    entity_id: str
    local_state: str
    ledger_state: str
    detected_at: datetime = field(default_factory=_utcnow)
    resolved_at: datetime | None = None
    id: int | None = None


@dataclass(eq=False, kw_only=True)
class TransitionAttempt:
    """Audit row for a lifecycle transition attempt, successful or not."""

    entity_id: str
    from_state: EntityState
    to_state: EntityState
    trigger: Trigger
    success: bool
    ledger_tx_signature: str | None = None
    error: str | None = None
    attempted_at: datetime = field(default_factory=_utcnow)
    id: int | None = None


@dataclass(eq=False, kw_only=True)
class Lease:
    resource_key: str
    holder: str
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now
