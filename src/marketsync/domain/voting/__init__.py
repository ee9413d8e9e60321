"""Off-chain vote collection and threshold aggregation."""

from __future__ import annotations

from .aggregator import VoteAggregator, VotingPolicy
from .eligibility import ensure_accepts_votes, validate_voter_id, voting_state

__all__ = [
    "VoteAggregator",
    "VotingPolicy",
    "ensure_accepts_votes",
    "validate_voter_id",
    "voting_state",
]
