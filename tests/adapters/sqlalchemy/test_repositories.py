from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

import pytest

from marketsync.domain.errors import DuplicateEventError, DuplicateVoteError
from marketsync.domain.model import (
    AggregationResult,
    EntityState,
    LedgerEvent,
    Outcome,
    Tally,
    VoteRecord,
    VoteType,
)
from tests.helpers.governance import EPOCH, load_entity, make_entity, store_entities, voter

if TYPE_CHECKING:
    from marketsync.domain.ports import UnitOfWorkFactory


def _vote(entity_id: str, index: int, *, value: bool, weight: int = 1) -> VoteRecord:
    return VoteRecord(
        entity_id=entity_id,
        voter_id=voter(index),
        vote_type=VoteType.PROPOSAL,
        value=value,
        weight=weight,
    )


def _event(signature: str, slot: int, *, processed: bool = False) -> LedgerEvent:
    return LedgerEvent(
        transaction_signature=signature,
        slot=slot,
        event_type="MarketActivated",
        entity_id="m1",
        payload={"signature": signature, "slot": slot, "type": "MarketActivated"},
        processed_at=EPOCH if processed else None,
    )


def test_entity_round_trip_keeps_enums_and_timestamps(uow_factory: UnitOfWorkFactory) -> None:
    entity = make_entity("m1", EntityState.RESOLVING, proposed_outcome=Outcome.INVALID)
    entity.sequence = 17
    store_entities(uow_factory, [entity])

    stored = load_entity(uow_factory, "m1")

    assert stored.state is EntityState.RESOLVING
    assert stored.proposed_outcome is Outcome.INVALID
    assert stored.resolving_at == EPOCH
    assert stored.resolving_at.tzinfo is not None
    assert stored.sequence == 17


def test_entity_listings(uow_factory: UnitOfWorkFactory) -> None:
    store_entities(
        uow_factory,
        [
            make_entity("m3", EntityState.FINALIZED),
            make_entity("m1", EntityState.PROPOSED),
            make_entity("m2", EntityState.CANCELLED),
            make_entity("m4", EntityState.DISPUTED),
        ],
    )
    with uow_factory() as uow:
        uow.repositories.votes.add(_vote("m1", 0, value=True))
        uow.commit()

    with uow_factory() as uow:
        entities = uow.repositories.entities
        assert entities.list_ids() == ["m1", "m2", "m3", "m4"]
        assert [e.id for e in entities.list_non_terminal()] == ["m1", "m4"]
        assert entities.list_with_votes(EntityState.PROPOSED, VoteType.PROPOSAL) == ["m1"]
        assert entities.list_with_votes(EntityState.DISPUTED, VoteType.DISPUTE) == []


def test_vote_tally_sums_weights(uow_factory: UnitOfWorkFactory) -> None:
    store_entities(uow_factory, [make_entity("m1")])
    with uow_factory() as uow:
        votes = uow.repositories.votes
        votes.add(_vote("m1", 0, value=True, weight=5))
        votes.add(_vote("m1", 1, value=False, weight=2))
        votes.add(_vote("m1", 2, value=True, weight=1))
        uow.commit()

    with uow_factory() as uow:
        votes = uow.repositories.votes
        assert votes.tally("m1", VoteType.PROPOSAL) == Tally(yes=6, no=2, voters=3)
        assert votes.tally("m1", VoteType.DISPUTE) == Tally()
        assert votes.exists("m1", voter(1), VoteType.PROPOSAL)
        assert not votes.exists("m1", voter(1), VoteType.DISPUTE)
        assert votes.voters("m1", VoteType.PROPOSAL) == [voter(0), voter(1), voter(2)]


def test_duplicate_vote_is_rejected(uow_factory: UnitOfWorkFactory) -> None:
    store_entities(uow_factory, [make_entity("m1")])
    with uow_factory() as uow:
        uow.repositories.votes.add(_vote("m1", 0, value=True))
        uow.commit()

    with pytest.raises(DuplicateVoteError), uow_factory() as uow:
        uow.repositories.votes.add(_vote("m1", 0, value=False))

    with uow_factory() as uow:
        assert uow.repositories.votes.tally("m1", VoteType.PROPOSAL) == Tally(
            yes=1, no=0, voters=1
        )


def test_aggregation_results_in_order(uow_factory: UnitOfWorkFactory) -> None:
    with uow_factory() as uow:
        for offset, met in ((0, False), (1, True)):
            uow.repositories.aggregation_results.add(
                AggregationResult(
                    entity_id="m1",
                    vote_type=VoteType.PROPOSAL,
                    yes_count=1 + offset,
                    no_count=1,
                    percentage_bps=5000,
                    threshold_bps=6000,
                    threshold_met=met,
                    created_at=EPOCH + timedelta(minutes=offset),
                )
            )
        uow.commit()

    with uow_factory() as uow:
        results = uow.repositories.aggregation_results.list_for("m1")

    assert [r.threshold_met for r in results] == [False, True]
    assert not results[0].submitted


def test_ledger_events_are_unique_per_signature(uow_factory: UnitOfWorkFactory) -> None:
    with uow_factory() as uow:
        uow.repositories.ledger_events.add(_event("tx-1", 3))
        uow.repositories.ledger_events.add(_event("tx-2", 1, processed=True))
        uow.repositories.ledger_events.add(_event("tx-3", 2))
        uow.commit()

    with pytest.raises(DuplicateEventError), uow_factory() as uow:
        uow.repositories.ledger_events.add(_event("tx-1", 9))

    with uow_factory() as uow:
        events = uow.repositories.ledger_events
        assert events.existing_signatures(["tx-1", "tx-4", "tx-2"]) == {"tx-1", "tx-2"}
        assert events.existing_signatures([]) == set()
        assert [e.transaction_signature for e in events.list_unprocessed()] == ["tx-3", "tx-1"]
        assert len(events.list_unprocessed(limit=1)) == 1
        stored = events.get("tx-1")
    assert stored is not None
    assert stored.slot == 3
    assert stored.payload["type"] == "MarketActivated"
