"""Typed ledger events and how each one overwrites the local entity."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

from marketsync.domain.model import Entity, EntityState, Outcome

if TYPE_CHECKING:
    from datetime import datetime


@dataclass(frozen=True, slots=True, kw_only=True)
class LedgerEventBase:
    """Fields every decoded event carries.

    ``target_state`` is the state the ledger account is in after the event;
    ``None`` means the event does not move the lifecycle.
    """

    target_state: ClassVar[EntityState | None] = None

    signature: str
    slot: int
    entity_id: str
    block_time: datetime | None = None

    def new_state(self) -> EntityState | None:
        return self.target_state

    def apply_to(self, entity: Entity, *, at: datetime) -> None:
        state = self.new_state()
        if state is not None and state is not entity.state:
            entity.advance(state, at=self.block_time or at)


@dataclass(frozen=True, slots=True, kw_only=True)
class MarketCreated(LedgerEventBase):
    target_state = EntityState.PROPOSED

    def apply_to(self, entity: Entity, *, at: datetime) -> None:
        when = self.block_time or at
        entity.proposed_at = entity.proposed_at or when
        super().apply_to(entity, at=at)
        entity.state_changed_at = entity.state_changed_at or when


@dataclass(frozen=True, slots=True, kw_only=True)
class ProposalApproved(LedgerEventBase):
    target_state = EntityState.APPROVED

    yes_votes: int | None = None
    no_votes: int | None = None

    def apply_to(self, entity: Entity, *, at: datetime) -> None:
        super().apply_to(entity, at=at)
        if self.yes_votes is not None and self.no_votes is not None:
            entity.proposal_yes = self.yes_votes
            entity.proposal_no = self.no_votes


@dataclass(frozen=True, slots=True, kw_only=True)
class MarketActivated(LedgerEventBase):
    target_state = EntityState.ACTIVE


@dataclass(frozen=True, slots=True, kw_only=True)
class MarketResolved(LedgerEventBase):
    target_state = EntityState.RESOLVING

    proposed_outcome: Outcome

    def apply_to(self, entity: Entity, *, at: datetime) -> None:
        super().apply_to(entity, at=at)
        entity.proposed_outcome = self.proposed_outcome


@dataclass(frozen=True, slots=True, kw_only=True)
class DisputeRaised(LedgerEventBase):
    target_state = EntityState.DISPUTED


@dataclass(frozen=True, slots=True, kw_only=True)
class DisputeAggregated(LedgerEventBase):
    yes_votes: int
    no_votes: int

    def apply_to(self, entity: Entity, *, at: datetime) -> None:
        when = self.block_time or at
        entity.dispute_yes = self.yes_votes
        entity.dispute_no = self.no_votes
        entity.dispute_aggregated_at = entity.dispute_aggregated_at or when
        entity.updated_at = when


@dataclass(frozen=True, slots=True, kw_only=True)
class MarketFinalized(LedgerEventBase):
    target_state = EntityState.FINALIZED

    final_outcome: Outcome

    def apply_to(self, entity: Entity, *, at: datetime) -> None:
        super().apply_to(entity, at=at)
        entity.final_outcome = self.final_outcome


@dataclass(frozen=True, slots=True, kw_only=True)
class MarketCancelled(LedgerEventBase):
    target_state = EntityState.CANCELLED


@dataclass(frozen=True, slots=True, kw_only=True)
class MarketStateChanged(LedgerEventBase):
    """Generic account update carrying the full lifecycle snapshot."""

    state: EntityState
    proposed_outcome: Outcome | None = None
    final_outcome: Outcome | None = None

    def new_state(self) -> EntityState | None:
        return self.state

    def apply_to(self, entity: Entity, *, at: datetime) -> None:
        super().apply_to(entity, at=at)
        entity.proposed_outcome = self.proposed_outcome
        entity.final_outcome = self.final_outcome


@dataclass(frozen=True, slots=True, kw_only=True)
class UnknownEvent(LedgerEventBase):
    """Anything the decoder did not recognise; logged and skipped."""

    event_type: str

    def apply_to(self, entity: Entity, *, at: datetime) -> None:
        _ = entity, at


type DomainEvent = (
    MarketCreated
    | ProposalApproved
    | MarketActivated
    | MarketResolved
    | DisputeRaised
    | DisputeAggregated
    | MarketFinalized
    | MarketCancelled
    | MarketStateChanged
    | UnknownEvent
)


def new_entity(event: DomainEvent) -> Entity:
    return Entity(id=event.entity_id)
