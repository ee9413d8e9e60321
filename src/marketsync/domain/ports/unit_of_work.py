"""Unit-of-work abstractions for coordinating repositories."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from types import TracebackType

    from marketsync.domain.ports.persistence import (
        AggregationResultRepository,
        DiscrepancyRepository,
        EntityRepository,
        LedgerEventRepository,
        TransitionAttemptRepository,
        VoteRepository,
    )


@runtime_checkable
class RepositoryCollection(Protocol):
    """Marker protocol for groups of repositories managed together."""


@runtime_checkable
class UnitOfWork[TRepositories: RepositoryCollection](Protocol):
    """Generic unit-of-work boundary around a repository collection."""

    @property
    def repositories(self) -> TRepositories: ...

    def __enter__(self) -> UnitOfWork[TRepositories]: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


@dataclass(slots=True)
class GovernanceRepositories(RepositoryCollection):
    """Every repository of the durable store; one session backs them all."""

    entities: EntityRepository
    votes: VoteRepository
    aggregation_results: AggregationResultRepository
    ledger_events: LedgerEventRepository
    discrepancies: DiscrepancyRepository
    transition_attempts: TransitionAttemptRepository


type GovernanceUnitOfWork = UnitOfWork[GovernanceRepositories]
type UnitOfWorkFactory = Callable[[], GovernanceUnitOfWork]
