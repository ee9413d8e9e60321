"""Ledger event ingestion and reconciliation."""

from __future__ import annotations

from .events import (
    DisputeAggregated,
    DisputeRaised,
    DomainEvent,
    LedgerEventBase,
    MarketActivated,
    MarketCancelled,
    MarketCreated,
    MarketFinalized,
    MarketResolved,
    MarketStateChanged,
    ProposalApproved,
    UnknownEvent,
)
from .indexer import AcceptResult, EventIndexer
from .reconcile import Reconciler

__all__ = [
    "AcceptResult",
    "DisputeAggregated",
    "DisputeRaised",
    "DomainEvent",
    "EventIndexer",
    "LedgerEventBase",
    "MarketActivated",
    "MarketCancelled",
    "MarketCreated",
    "MarketFinalized",
    "MarketResolved",
    "MarketStateChanged",
    "ProposalApproved",
    "Reconciler",
    "UnknownEvent",
]
