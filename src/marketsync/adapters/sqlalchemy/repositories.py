"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import case, exists, func, select
from sqlalchemy.exc import IntegrityError

from marketsync.adapters.sqlalchemy.mappings import (
    aggregation_result_table,
    entity_table,
    ledger_event_table,
    reconciliation_discrepancy_table,
    transition_attempt_table,
    vote_record_table,
)
from marketsync.domain.errors import DuplicateEventError, DuplicateVoteError
from marketsync.domain.model import (
    TERMINAL_STATES,
    AggregationResult,
    Entity,
    LedgerEvent,
    ReconciliationDiscrepancy,
    Tally,
    TransitionAttempt,
    VoteRecord,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.orm import Session

    from marketsync.domain.model import EntityState, VoteType

# SQLite caps bound parameters per statement; stay well below the limit.
_IN_CLAUSE_CHUNK = 500


class SqlAlchemyEntityRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Entity) -> None:
        self.session.add(entity)

    def get(self, entity_id: str) -> Entity | None:
        return self.session.get(Entity, entity_id)

    def list_ids(self) -> list[str]:
        stmt = select(entity_table.c.id).order_by(entity_table.c.id)
        return list(self.session.execute(stmt).scalars())

    def list_non_terminal(self) -> list[Entity]:
        stmt = (
            select(Entity)
            .where(entity_table.c.state.not_in(list(TERMINAL_STATES)))
            .order_by(entity_table.c.id)
        )
        return list(self.session.execute(stmt).scalars())

    def list_with_votes(self, state: EntityState, vote_type: VoteType) -> list[str]:
        has_votes = exists().where(
            vote_record_table.c.entity_id == entity_table.c.id,
            vote_record_table.c.vote_type == vote_type,
        )
        stmt = (
            select(entity_table.c.id)
            .where(entity_table.c.state == state)
            .where(has_votes)
            .order_by(entity_table.c.id)
        )
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyVoteRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, vote: VoteRecord) -> None:
        self.session.add(vote)
        try:
            self.session.flush()
        except IntegrityError as exc:
            self.session.rollback()
            raise DuplicateVoteError(vote.entity_id, vote.voter_id, vote.vote_type) from exc

    def exists(self, entity_id: str, voter_id: str, vote_type: VoteType) -> bool:
        stmt = select(vote_record_table.c.id).where(
            vote_record_table.c.entity_id == entity_id,
            vote_record_table.c.voter_id == voter_id,
            vote_record_table.c.vote_type == vote_type,
        )
        return self.session.execute(stmt.limit(1)).first() is not None

    def tally(self, entity_id: str, vote_type: VoteType) -> Tally:
        weight = vote_record_table.c.weight
        value = vote_record_table.c.value
        stmt = select(
            func.coalesce(func.sum(case((value.is_(True), weight), else_=0)), 0),
            func.coalesce(func.sum(case((value.is_(False), weight), else_=0)), 0),
            func.count(vote_record_table.c.id),
        ).where(
            vote_record_table.c.entity_id == entity_id,
            vote_record_table.c.vote_type == vote_type,
        )
        yes, no, voters = self.session.execute(stmt).one()
        return Tally(yes=int(yes), no=int(no), voters=int(voters))

    def voters(self, entity_id: str, vote_type: VoteType) -> list[str]:
        stmt = (
            select(vote_record_table.c.voter_id)
            .where(
                vote_record_table.c.entity_id == entity_id,
                vote_record_table.c.vote_type == vote_type,
            )
            .order_by(vote_record_table.c.id)
        )
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyAggregationResultRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, result: AggregationResult) -> None:
        self.session.add(result)

    def list_for(self, entity_id: str) -> list[AggregationResult]:
        stmt = (
            select(AggregationResult)
            .where(aggregation_result_table.c.entity_id == entity_id)
            .order_by(aggregation_result_table.c.created_at, aggregation_result_table.c.id)
        )
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyLedgerEventRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, event: LedgerEvent) -> None:
        self.session.add(event)
        try:
            self.session.flush()
        except IntegrityError as exc:
            self.session.rollback()
            raise DuplicateEventError(event.transaction_signature) from exc

    def get(self, signature: str) -> LedgerEvent | None:
        stmt = select(LedgerEvent).where(ledger_event_table.c.transaction_signature == signature)
        return self.session.execute(stmt).scalar_one_or_none()

    def existing_signatures(self, signatures: Sequence[str]) -> set[str]:
        wanted = list(dict.fromkeys(signatures))
        found: set[str] = set()
        column = ledger_event_table.c.transaction_signature
        for start in range(0, len(wanted), _IN_CLAUSE_CHUNK):
            chunk = wanted[start : start + _IN_CLAUSE_CHUNK]
            found.update(self.session.execute(select(column).where(column.in_(chunk))).scalars())
        return found

    def list_unprocessed(self, *, limit: int | None = None) -> list[LedgerEvent]:
        stmt = (
            select(LedgerEvent)
            .where(ledger_event_table.c.processed_at.is_(None))
            .order_by(ledger_event_table.c.slot, ledger_event_table.c.id)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyDiscrepancyRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, discrepancy: ReconciliationDiscrepancy) -> None:
        self.session.add(discrepancy)

    def list_for(self, entity_id: str) -> list[ReconciliationDiscrepancy]:
        table = reconciliation_discrepancy_table
        stmt = (
            select(ReconciliationDiscrepancy)
            .where(table.c.entity_id == entity_id)
            .order_by(table.c.detected_at, table.c.id)
        )
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyTransitionAttemptRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, attempt: TransitionAttempt) -> None:
        self.session.add(attempt)

    def list_for(self, entity_id: str) -> list[TransitionAttempt]:
        table = transition_attempt_table
        stmt = (
            select(TransitionAttempt)
            .where(table.c.entity_id == entity_id)
            .order_by(table.c.attempted_at, table.c.id)
        )
        return list(self.session.execute(stmt).scalars())
