"""SQLAlchemy table metadata and imperative mappings for the domain records."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from enum import StrEnum
from functools import cache
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Dialect,
    Enum,
    Index,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
    orm,
)

from marketsync.domain.model import (
    AggregationResult,
    Entity,
    EntityState,
    LedgerEvent,
    Outcome,
    ReconciliationDiscrepancy,
    TransitionAttempt,
    Trigger,
    VoteRecord,
    VoteType,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

# Ledger addresses and transaction signatures are base58; 128 leaves headroom.
KEY_LENGTH = 128


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


def _enum[E: StrEnum](enum_cls: type[E]) -> Enum:
    return Enum(
        enum_cls,
        native_enum=False,
        length=32,
        values_callable=lambda members: [member.value for member in members],
    )


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Tables ----------------------------------------------------------------------

entity_table = Table(
    "entity",
    mapper_registry.metadata,
    Column("id", String(KEY_LENGTH), primary_key=True),
    Column("state", _enum(EntityState), nullable=False, index=True),
    Column("proposed_outcome", _enum(Outcome), nullable=True),
    Column("final_outcome", _enum(Outcome), nullable=True),
    Column("proposed_at", UTCDateTime(), nullable=True),
    Column("approved_at", UTCDateTime(), nullable=True),
    Column("activated_at", UTCDateTime(), nullable=True),
    Column("resolving_at", UTCDateTime(), nullable=True),
    Column("disputed_at", UTCDateTime(), nullable=True),
    Column("dispute_aggregated_at", UTCDateTime(), nullable=True),
    Column("finalized_at", UTCDateTime(), nullable=True),
    Column("cancelled_at", UTCDateTime(), nullable=True),
    Column("state_changed_at", UTCDateTime(), nullable=True),
    Column("proposal_yes", Integer, nullable=False, default=0),
    Column("proposal_no", Integer, nullable=False, default=0),
    Column("dispute_yes", Integer, nullable=False, default=0),
    Column("dispute_no", Integer, nullable=False, default=0),
    Column("sequence", Integer, nullable=False, default=0),
    Column("updated_at", UTCDateTime(), nullable=True),
)

vote_record_table = Table(
    "vote_record",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("entity_id", String(KEY_LENGTH), nullable=False),
    Column("voter_id", String(KEY_LENGTH), nullable=False),
    Column("vote_type", _enum(VoteType), nullable=False),
    Column("value", Boolean, nullable=False),
    Column("weight", Integer, nullable=False),
    Column("created_at", UTCDateTime(), nullable=False),
    UniqueConstraint("entity_id", "voter_id", "vote_type"),
    Index("ix_vote_record_entity_type", "entity_id", "vote_type"),
)

aggregation_result_table = Table(
    "aggregation_result",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("entity_id", String(KEY_LENGTH), nullable=False, index=True),
    Column("vote_type", _enum(VoteType), nullable=False),
    Column("yes_count", Integer, nullable=False),
    Column("no_count", Integer, nullable=False),
    Column("percentage_bps", Integer, nullable=False),
    Column("threshold_bps", Integer, nullable=False),
    Column("threshold_met", Boolean, nullable=False),
    Column("ledger_tx_signature", String(KEY_LENGTH), nullable=True),
    Column("error", Text, nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
)

ledger_event_table = Table(
    "ledger_event",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("transaction_signature", String(KEY_LENGTH), nullable=False, unique=True),
    Column("slot", Integer, nullable=False),
    Column("event_type", String(64), nullable=False),
    Column("entity_id", String(KEY_LENGTH), nullable=True, index=True),
    Column("payload", JSON, nullable=False),
    Column("block_time", UTCDateTime(), nullable=True),
    Column("received_at", UTCDateTime(), nullable=False),
    Column("processed_at", UTCDateTime(), nullable=True, index=True),
    Column("error", Text, nullable=True),
)

reconciliation_discrepancy_table = Table(
    "reconciliation_discrepancy",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("entity_id", String(KEY_LENGTH), nullable=False, index=True),
    Column("local_state", String(255), nullable=False),
    Column("ledger_state", String(255), nullable=False),
    Column("detected_at", UTCDateTime(), nullable=False),
    Column("resolved_at", UTCDateTime(), nullable=True),
)

transition_attempt_table = Table(
    "transition_attempt",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("entity_id", String(KEY_LENGTH), nullable=False, index=True),
    Column("from_state", _enum(EntityState), nullable=False),
    Column("to_state", _enum(EntityState), nullable=False),
    Column("trigger", _enum(Trigger), nullable=False),
    Column("success", Boolean, nullable=False),
    Column("ledger_tx_signature", String(KEY_LENGTH), nullable=True),
    Column("error", Text, nullable=True),
    Column("attempted_at", UTCDateTime(), nullable=False),
)

lease_table = Table(
    "lease",
    mapper_registry.metadata,
    Column("resource_key", String(255), primary_key=True),
    Column("holder", String(255), nullable=False),
    Column("expires_at", UTCDateTime(), nullable=False),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain records (idempotent)."""

    log.info("Starting SQLAlchemy mappers")
    mapper_registry.map_imperatively(Entity, entity_table)
    mapper_registry.map_imperatively(VoteRecord, vote_record_table)
    mapper_registry.map_imperatively(AggregationResult, aggregation_result_table)
    mapper_registry.map_imperatively(LedgerEvent, ledger_event_table)
    mapper_registry.map_imperatively(ReconciliationDiscrepancy, reconciliation_discrepancy_table)
    mapper_registry.map_imperatively(TransitionAttempt, transition_attempt_table)
    orm.configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    mapper_registry.metadata.create_all(engine)
