"""Who may vote on what, and when."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Final

from marketsync.domain.errors import IneligibleStateError, InvalidVoterError
from marketsync.domain.model import EntityState, VoteType

if TYPE_CHECKING:
    from marketsync.domain.model import Entity

# Ledger addresses are base58 encoded 32 byte keys.
_ADDRESS_PATTERN: Final = re.compile(r"[1-9A-HJ-NP-Za-km-z]{32,44}")

VOTING_STATE: Final[dict[VoteType, EntityState]] = {
    VoteType.PROPOSAL: EntityState.PROPOSED,
    VoteType.DISPUTE: EntityState.DISPUTED,
}


def voting_state(vote_type: VoteType) -> EntityState:
    return VOTING_STATE[vote_type]


def validate_voter_id(voter_id: str) -> str:
    if not _ADDRESS_PATTERN.fullmatch(voter_id):
        raise InvalidVoterError(f"Not a ledger address: {voter_id!r}")
    return voter_id


def ensure_accepts_votes(entity: Entity, vote_type: VoteType) -> None:
    expected = VOTING_STATE[vote_type]
    if entity.state is not expected:
        raise IneligibleStateError(
            f"{vote_type} votes require state {expected}, entity {entity.id} is {entity.state}"
        )
    if vote_type is VoteType.DISPUTE and entity.dispute_aggregated_at is not None:
        raise IneligibleStateError(f"Dispute votes on {entity.id} were already aggregated")
