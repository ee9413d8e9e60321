"""The governed entity (a market) whose lifecycle this service tracks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from marketsync.domain.model.enums import EntityState, Outcome, VoteType

if TYPE_CHECKING:
    from datetime import datetime

    from marketsync.domain.model.tally import Tally


# state -> attribute stamped when the entity enters that state
_STATE_TIMESTAMPS: dict[EntityState, str] = {
    EntityState.PROPOSED: "proposed_at",
    EntityState.APPROVED: "approved_at",
    EntityState.ACTIVE: "activated_at",
    EntityState.RESOLVING: "resolving_at",
    EntityState.DISPUTED: "disputed_at",
    EntityState.FINALIZED: "finalized_at",
    EntityState.CANCELLED: "cancelled_at",
}


@dataclass(eq=False, kw_only=True)
class Entity:
    """Local, read-optimised copy of a ledger market account.

    ``sequence`` is the slot of the last ledger event applied to this copy; it
    only ever moves forward. Optimistic writes made by the aggregator or the
    lifecycle monitor leave it untouched.
    """

    id: str
    state: EntityState = EntityState.PROPOSED
    proposed_outcome: Outcome | None = None
    final_outcome: Outcome | None = None

    proposed_at: datetime | None = None
    approved_at: datetime | None = None
    activated_at: datetime | None = None
    resolving_at: datetime | None = None
    disputed_at: datetime | None = None
    dispute_aggregated_at: datetime | None = None
    finalized_at: datetime | None = None
    cancelled_at: datetime | None = None
    state_changed_at: datetime | None = None

    proposal_yes: int = 0
    proposal_no: int = 0
    dispute_yes: int = 0
    dispute_no: int = 0

    sequence: int = 0
    updated_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def advance(self, state: EntityState, *, at: datetime) -> EntityState:
        """Move to ``state`` and stamp its timestamp. Returns the previous state.

        Callers validate the transition; ledger overwrites go through here too.
        """

        previous = self.state
        self.state = state
        setattr(self, _STATE_TIMESTAMPS[state], at)
        self.state_changed_at = at
        self.updated_at = at
        return previous

    def record_tally(self, vote_type: VoteType, tally: Tally) -> None:
        if vote_type is VoteType.PROPOSAL:
            self.proposal_yes = tally.yes
            self.proposal_no = tally.no
        else:
            self.dispute_yes = tally.yes
            self.dispute_no = tally.no

    def observe_sequence(self, slot: int) -> bool:
        """Advance ``sequence`` to ``slot`` if it is newer. Returns whether it was."""

        if slot <= self.sequence:
            return False
        self.sequence = slot
        return True
