"""SQLAlchemy adapter package."""

from __future__ import annotations

from .leasing import SqlAlchemyLeaseManager
from .mappings import create_all_tables, mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyAggregationResultRepository,
    SqlAlchemyDiscrepancyRepository,
    SqlAlchemyEntityRepository,
    SqlAlchemyLedgerEventRepository,
    SqlAlchemyTransitionAttemptRepository,
    SqlAlchemyVoteRepository,
)
from .unit_of_work import Database, SqlAlchemyUnitOfWork, StartupError

__all__ = [
    "Database",
    "SqlAlchemyAggregationResultRepository",
    "SqlAlchemyDiscrepancyRepository",
    "SqlAlchemyEntityRepository",
    "SqlAlchemyLeaseManager",
    "SqlAlchemyLedgerEventRepository",
    "SqlAlchemyTransitionAttemptRepository",
    "SqlAlchemyUnitOfWork",
    "SqlAlchemyVoteRepository",
    "StartupError",
    "create_all_tables",
    "mapper_registry",
    "start_mappers",
]
