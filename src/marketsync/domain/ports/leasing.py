"""Port for time-bounded per-resource leases."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from marketsync.domain.model import Lease


@runtime_checkable
class LeaseManager(Protocol):
    """Conditional-write lease contract.

    ``acquire`` returns ``None`` when another holder owns an unexpired lease.
    ``renew`` and ``release`` only act when ``holder`` still owns the lease.
    """

    def acquire(self, resource_key: str, holder: str, ttl_seconds: float) -> Lease | None: ...

    def renew(self, resource_key: str, holder: str, ttl_seconds: float) -> bool: ...

    def release(self, resource_key: str, holder: str) -> bool: ...
