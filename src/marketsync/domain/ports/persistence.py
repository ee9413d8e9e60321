"""Ports for persisting domain records."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from marketsync.domain.model import (
        AggregationResult,
        Entity,
        EntityState,
        LedgerEvent,
        ReconciliationDiscrepancy,
        Tally,
        TransitionAttempt,
        VoteRecord,
        VoteType,
    )


@runtime_checkable
class Repository[TRecord](Protocol):
    """Minimal repository contract for a persistent record store."""

    def add(self, record: TRecord) -> None: ...


@runtime_checkable
class EntityRepository(Repository["Entity"], Protocol):
    def get(self, entity_id: str) -> Entity | None: ...

    def list_ids(self) -> list[str]: ...

    def list_non_terminal(self) -> list[Entity]: ...

    def list_with_votes(self, state: EntityState, vote_type: VoteType) -> list[str]: ...


@runtime_checkable
class VoteRepository(Repository["VoteRecord"], Protocol):
    """``add`` raises ``DuplicateVoteError`` when the unique key is taken."""

    def exists(self, entity_id: str, voter_id: str, vote_type: VoteType) -> bool: ...

    def tally(self, entity_id: str, vote_type: VoteType) -> Tally: ...

    def voters(self, entity_id: str, vote_type: VoteType) -> list[str]: ...


@runtime_checkable
class AggregationResultRepository(Repository["AggregationResult"], Protocol):
    def list_for(self, entity_id: str) -> list[AggregationResult]: ...


@runtime_checkable
class LedgerEventRepository(Repository["LedgerEvent"], Protocol):
    """``add`` raises ``DuplicateEventError`` when the signature is already stored."""

    def get(self, signature: str) -> LedgerEvent | None: ...

    def existing_signatures(self, signatures: Sequence[str]) -> set[str]: ...

    def list_unprocessed(self, *, limit: int | None = None) -> list[LedgerEvent]: ...


@runtime_checkable
class DiscrepancyRepository(Repository["ReconciliationDiscrepancy"], Protocol):
    def list_for(self, entity_id: str) -> list[ReconciliationDiscrepancy]: ...


@runtime_checkable
class TransitionAttemptRepository(Repository["TransitionAttempt"], Protocol):
    def list_for(self, entity_id: str) -> list[TransitionAttempt]: ...
