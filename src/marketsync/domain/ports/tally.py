"""Port for the low-durability tally cache."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from marketsync.domain.model import Tally, VoteType


@runtime_checkable
class TallyStore(Protocol):
    """Atomic counters plus a voter dedup set per (entity, vote type).

    Never authoritative: ``read`` and ``record_vote`` return ``None`` when the
    round expired or was flushed, and callers rebuild it from the durable vote
    records with ``populate``. ``populate`` only fills a missing round, so a
    rebuild computed from an older snapshot cannot overwrite newer counts.
    """

    def record_vote(
        self, entity_id: str, vote_type: VoteType, voter_id: str, *, value: bool, weight: int
    ) -> Tally | None: ...

    def read(self, entity_id: str, vote_type: VoteType) -> Tally | None: ...

    def populate(
        self, entity_id: str, vote_type: VoteType, tally: Tally, voters: list[str]
    ) -> bool: ...

    def has_voted(self, entity_id: str, vote_type: VoteType, voter_id: str) -> bool: ...
