"""Per-entity lease helpers shared by the sweeps."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

from marketsync.domain.errors import LockContentionError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from marketsync.domain.model import Lease
    from marketsync.domain.ports import LeaseManager

log = logging.getLogger(__name__)


def entity_lease_key(entity_id: str) -> str:
    return f"entity:{entity_id}"


@contextmanager
def hold_lease(
    leases: LeaseManager, resource_key: str, holder: str, ttl_seconds: float
) -> Iterator[Lease]:
    """Hold ``resource_key`` for the duration of the block.

    Raises ``LockContentionError`` when someone else holds it. The lease is
    released on every exit path.
    """

    lease = leases.acquire(resource_key, holder, ttl_seconds)
    if lease is None:
        raise LockContentionError(resource_key)
    try:
        yield lease
    finally:
        if not leases.release(resource_key, holder):
            log.warning("Lease %s expired before release by %s", resource_key, holder)
