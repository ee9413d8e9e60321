"""Reusable fakes and builders for governance tests."""

from __future__ import annotations

import itertools
import threading
from collections import deque
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from marketsync.domain.model import Entity, EntityState, Lease
from marketsync.domain.ports.ledger import LedgerAccountState

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from marketsync.domain.model import AlertType, Channel, Outcome, Severity
    from marketsync.domain.ports import UnitOfWorkFactory

PROGRAM_ADDRESS = "GovProgram1111111111111111111111111111111"
EPOCH = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)

# base58 excludes 0, O, I and l
_VOTER_CHARS = "ABCDEFGHJKLMNPQRSTUVWXYZ"


def voter(index: int) -> str:
    """A well-formed ledger address, distinct per ``index``."""

    return _VOTER_CHARS[index % len(_VOTER_CHARS)] * 40


class FrozenClock:
    def __init__(self, now: datetime = EPOCH) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeLedger:
    """In-memory ledger port; queue exceptions in ``failures`` to fail submissions."""

    def __init__(self) -> None:
        self.program_address = PROGRAM_ADDRESS
        self.submissions: list[tuple[str, list[str], dict[str, Any]]] = []
        self.failures: deque[Exception] = deque()
        self.accounts: dict[str, LedgerAccountState] = {}
        self.positions: dict[tuple[str, str], int] = {}
        self.read_failures: dict[str, Exception] = {}
        self._signatures = itertools.count(1)
        self._lock = threading.Lock()

    def submit_signed_instruction(
        self,
        program_address: str,
        instruction_id: str,
        accounts: Sequence[str],
        args: Mapping[str, Any],
    ) -> str:
        assert program_address == self.program_address
        with self._lock:
            self.submissions.append((instruction_id, list(accounts), dict(args)))
            if self.failures:
                raise self.failures.popleft()
            return f"sig-{next(self._signatures)}"

    def read_account_state(self, entity_id: str) -> LedgerAccountState | None:
        if entity_id in self.read_failures:
            raise self.read_failures[entity_id]
        return self.accounts.get(entity_id)

    def read_position(self, entity_id: str, owner: str) -> int:
        return self.positions.get((entity_id, owner), 0)

    def set_account(
        self,
        entity_id: str,
        state: EntityState,
        *,
        slot: int = 100,
        proposed_outcome: Outcome | None = None,
        final_outcome: Outcome | None = None,
    ) -> None:
        self.accounts[entity_id] = LedgerAccountState(
            entity_id=entity_id,
            state=state,
            slot=slot,
            proposed_outcome=proposed_outcome,
            final_outcome=final_outcome,
        )

    def instructions(self) -> list[str]:
        return [instruction for instruction, _, _ in self.submissions]


class RecordingPublisher:
    def __init__(self) -> None:
        self.events: list[tuple[Channel, dict[str, Any]]] = []

    def publish(self, channel: Channel, event: Mapping[str, Any]) -> None:
        self.events.append((channel, dict(event)))

    def on(self, channel: Channel) -> list[dict[str, Any]]:
        return [event for published, event in self.events if published is channel]


class RecordingAlerter:
    def __init__(self) -> None:
        self.alerts: list[tuple[AlertType, Severity, dict[str, Any]]] = []

    def raise_alert(
        self, alert_type: AlertType, severity: Severity, payload: Mapping[str, Any]
    ) -> None:
        self.alerts.append((alert_type, severity, dict(payload)))

    def types(self) -> list[AlertType]:
        return [alert_type for alert_type, _, _ in self.alerts]


class InMemoryLeaseManager:
    def __init__(self, clock: FrozenClock) -> None:
        self._clock = clock
        self.leases: dict[str, Lease] = {}
        self.acquired: list[str] = []
        self.released: list[str] = []
        self._lock = threading.Lock()

    def acquire(self, resource_key: str, holder: str, ttl_seconds: float) -> Lease | None:
        now = self._clock()
        with self._lock:
            current = self.leases.get(resource_key)
            if current is not None and not current.is_expired(now):
                return None
            lease = Lease(
                resource_key=resource_key,
                holder=holder,
                expires_at=now + timedelta(seconds=ttl_seconds),
            )
            self.leases[resource_key] = lease
            self.acquired.append(resource_key)
            return lease

    def renew(self, resource_key: str, holder: str, ttl_seconds: float) -> bool:
        now = self._clock()
        with self._lock:
            current = self.leases.get(resource_key)
            if current is None or current.holder != holder or current.is_expired(now):
                return False
            current.expires_at = now + timedelta(seconds=ttl_seconds)
            return True

    def release(self, resource_key: str, holder: str) -> bool:
        with self._lock:
            current = self.leases.get(resource_key)
            if current is None or current.holder != holder:
                return False
            del self.leases[resource_key]
            self.released.append(resource_key)
            return True

    def hold(self, resource_key: str, holder: str = "someone-else") -> None:
        self.leases[resource_key] = Lease(
            resource_key=resource_key,
            holder=holder,
            expires_at=self._clock() + timedelta(hours=1),
        )


def make_entity(
    entity_id: str = "market-1",
    state: EntityState = EntityState.PROPOSED,
    *,
    changed_at: datetime = EPOCH,
    **fields: Any,
) -> Entity:
    """An entity stamped as having entered ``state`` at ``changed_at``."""

    entity = Entity(id=entity_id, **fields)
    entity.advance(state, at=changed_at)
    return entity


def store_entities(uow_factory: UnitOfWorkFactory, entities: Iterable[Entity]) -> None:
    with uow_factory() as uow:
        for entity in entities:
            uow.repositories.entities.add(entity)
        uow.commit()


def load_entity(uow_factory: UnitOfWorkFactory, entity_id: str) -> Entity:
    with uow_factory() as uow:
        entity = uow.repositories.entities.get(entity_id)
    assert entity is not None
    return entity
