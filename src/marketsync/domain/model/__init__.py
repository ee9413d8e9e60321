"""Public domain model surface."""

from __future__ import annotations

from marketsync.domain.model.entity import Entity
from marketsync.domain.model.enums import (
    TERMINAL_STATES,
    AlertType,
    Channel,
    EntityState,
    Outcome,
    Severity,
    Trigger,
    VoteType,
)
from marketsync.domain.model.records import (
    AggregationResult,
    Lease,
    LedgerEvent,
    ReconciliationDiscrepancy,
    TransitionAttempt,
    VoteRecord,
)
from marketsync.domain.model.tally import BPS_SCALE, Tally, percentage_bps

__all__ = [
    "BPS_SCALE",
    "TERMINAL_STATES",
    "AggregationResult",
    "AlertType",
    "Channel",
    "Entity",
    "EntityState",
    "Lease",
    "LedgerEvent",
    "Outcome",
    "ReconciliationDiscrepancy",
    "Severity",
    "Tally",
    "TransitionAttempt",
    "Trigger",
    "VoteRecord",
    "VoteType",
    "percentage_bps",
]
