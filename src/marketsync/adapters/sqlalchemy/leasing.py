"""Leases stored as rows and taken with conditional writes."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from sqlalchemy import delete, insert, update
from sqlalchemy.exc import IntegrityError

from marketsync.adapters.sqlalchemy.mappings import lease_table
from marketsync.domain.clock import utcnow
from marketsync.domain.model import Lease

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from marketsync.domain.clock import Clock

log = logging.getLogger(__name__)


class SqlAlchemyLeaseManager:
    """Lease manager on the ``lease`` table; works across processes sharing the store.

    Acquisition is an insert, falling back to taking over an expired row. Leases
    are not re-entrant: the current holder cannot acquire its own lease again.
    """

    def __init__(self, engine: Engine, *, clock: Clock = utcnow) -> None:
        self._engine = engine
        self._clock = clock

    def acquire(self, resource_key: str, holder: str, ttl_seconds: float) -> Lease | None:
        now = self._clock()
        expires_at = now + timedelta(seconds=ttl_seconds)
        try:
            with self._engine.begin() as connection:
                connection.execute(
                    insert(lease_table).values(
                        resource_key=resource_key, holder=holder, expires_at=expires_at
                    )
                )
        except IntegrityError:
            with self._engine.begin() as connection:
                taken = connection.execute(
                    update(lease_table)
                    .where(lease_table.c.resource_key == resource_key)
                    .where(lease_table.c.expires_at <= now)
                    .values(holder=holder, expires_at=expires_at)
                ).rowcount
            if taken != 1:
                log.debug("Lease %s is held by someone else", resource_key)
                return None
            log.info("Took over expired lease %s", resource_key)
        return Lease(resource_key=resource_key, holder=holder, expires_at=expires_at)

    def renew(self, resource_key: str, holder: str, ttl_seconds: float) -> bool:
        now = self._clock()
        with self._engine.begin() as connection:
            renewed = connection.execute(
                update(lease_table)
                .where(lease_table.c.resource_key == resource_key)
                .where(lease_table.c.holder == holder)
                .where(lease_table.c.expires_at > now)
                .values(expires_at=now + timedelta(seconds=ttl_seconds))
            ).rowcount
        return renewed == 1

    def release(self, resource_key: str, holder: str) -> bool:
        with self._engine.begin() as connection:
            released = connection.execute(
                delete(lease_table)
                .where(lease_table.c.resource_key == resource_key)
                .where(lease_table.c.holder == holder)
            ).rowcount
        return released == 1
