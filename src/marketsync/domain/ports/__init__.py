"""Ports the domain services depend on."""

from __future__ import annotations

from .decoding import EventDecoder
from .leasing import LeaseManager
from .ledger import LedgerAccountState, LedgerPort
from .notifications import Alerter, Publisher
from .persistence import (
    AggregationResultRepository,
    DiscrepancyRepository,
    EntityRepository,
    LedgerEventRepository,
    TransitionAttemptRepository,
    VoteRepository,
)
from .tally import TallyStore
from .unit_of_work import (
    GovernanceRepositories,
    GovernanceUnitOfWork,
    UnitOfWork,
    UnitOfWorkFactory,
)

__all__ = [
    "AggregationResultRepository",
    "Alerter",
    "DiscrepancyRepository",
    "EntityRepository",
    "EventDecoder",
    "GovernanceRepositories",
    "GovernanceUnitOfWork",
    "LeaseManager",
    "LedgerAccountState",
    "LedgerEventRepository",
    "LedgerPort",
    "Publisher",
    "TallyStore",
    "TransitionAttemptRepository",
    "UnitOfWork",
    "UnitOfWorkFactory",
    "VoteRepository",
]
