"""SQLAlchemy engine ownership and the governance unit of work."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Literal

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from marketsync.adapters.sqlalchemy.leasing import SqlAlchemyLeaseManager
from marketsync.adapters.sqlalchemy.mappings import create_all_tables, start_mappers
from marketsync.adapters.sqlalchemy.repositories import (
    SqlAlchemyAggregationResultRepository,
    SqlAlchemyDiscrepancyRepository,
    SqlAlchemyEntityRepository,
    SqlAlchemyLedgerEventRepository,
    SqlAlchemyTransitionAttemptRepository,
    SqlAlchemyVoteRepository,
)
from marketsync.domain.clock import utcnow
from marketsync.domain.ports.unit_of_work import GovernanceRepositories

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine

    from marketsync.domain.clock import Clock

log = logging.getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when the database is used before it was started, or twice started."""


class Database:
    """Owns the engine and session factory for one durable store."""

    def __init__(
        self, *, engine: Engine | None = None, uri: str | None = None, echo: bool = False
    ) -> None:
        if engine is None:
            if uri is None:
                raise StartupError("Database needs either an engine or a URI")
            engine = create_engine(uri, echo=echo)
        self.engine = engine
        self.session_factory: sessionmaker[Session] = sessionmaker(
            bind=engine, expire_on_commit=False
        )
        self._started = False

    @property
    def is_started(self) -> bool:
        return self._started

    def startup(self) -> None:
        """Configure mappers and create missing tables."""

        if self._started:
            raise StartupError("Database already started")
        start_mappers()
        create_all_tables(self.engine)
        self._started = True
        log.info("Database ready at %s", self.engine.url.render_as_string(hide_password=True))

    def unit_of_work(self) -> SqlAlchemyUnitOfWork:
        if not self._started:
            raise StartupError(
                "Database not started. Call Database.startup() before requesting a unit of work."
            )
        return SqlAlchemyUnitOfWork(self.session_factory)

    def lease_manager(self, *, clock: Clock = utcnow) -> SqlAlchemyLeaseManager:
        if not self._started:
            raise StartupError("Database not started")
        return SqlAlchemyLeaseManager(self.engine, clock=clock)

    def dispose(self) -> None:
        self.engine.dispose()
        self._started = False


class SqlAlchemyUnitOfWork:
    """One session shared by every governance repository.

    Uncommitted work is discarded when the block exits. Records loaded inside
    stay readable afterwards (``expire_on_commit=False``).
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory
        self._session: Session | None = None
        self._repositories: GovernanceRepositories | None = None

    def __enter__(self) -> SqlAlchemyUnitOfWork:
        self.session = self.session_factory()
        self._repositories = GovernanceRepositories(
            entities=SqlAlchemyEntityRepository(self.session),
            votes=SqlAlchemyVoteRepository(self.session),
            aggregation_results=SqlAlchemyAggregationResultRepository(self.session),
            ledger_events=SqlAlchemyLedgerEventRepository(self.session),
            discrepancies=SqlAlchemyDiscrepancyRepository(self.session),
            transition_attempts=SqlAlchemyTransitionAttemptRepository(self.session),
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        if exc_type is not None:
            self.rollback()
        self.session.close()
        self.session = None
        self._repositories = None
        return False

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    @property
    def repositories(self) -> GovernanceRepositories:
        if self._repositories is None:
            raise StartupError("Unit of work session not initialised")
        return self._repositories

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._session

    @session.setter
    def session(self, session: Session | None) -> None:
        if self._session is not None and session is not None:
            raise StartupError("Unit of work session already initialised")
        self._session = session


if TYPE_CHECKING:
    from marketsync.domain.ports.unit_of_work import GovernanceUnitOfWork

    _uow_check: GovernanceUnitOfWork = SqlAlchemyUnitOfWork(sessionmaker())
