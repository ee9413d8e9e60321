"""Periodic lifecycle sweep, administrative transitions and stuck detection."""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from marketsync.domain.clock import utcnow
from marketsync.domain.errors import (
    CircuitOpenError,
    ConsistencyError,
    EntityNotFoundError,
    LedgerError,
    TransientLedgerError,
)
from marketsync.domain.leasing import entity_lease_key, hold_lease
from marketsync.domain.lifecycle.fsm import validate_transition
from marketsync.domain.model import (
    AlertType,
    Channel,
    EntityState,
    Outcome,
    Severity,
    Tally,
    TransitionAttempt,
    Trigger,
    VoteType,
)
from marketsync.domain.ports.ledger import ACTIVATE_MARKET, CANCEL_MARKET, FINALIZE_MARKET
from marketsync.domain.resilience import CircuitBreaker
from marketsync.domain.sweeps import SweepGuard, SweepSummary, fan_out

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from datetime import datetime

    from marketsync.domain.clock import Clock
    from marketsync.domain.model import Entity
    from marketsync.domain.ports import (
        Alerter,
        LeaseManager,
        LedgerPort,
        Publisher,
        UnitOfWorkFactory,
    )

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LifecyclePolicy:
    resolution_delay: timedelta = timedelta(hours=48)
    dispute_window: timedelta = timedelta(hours=72)
    stuck_window: timedelta = timedelta(days=30)
    dispute_threshold_bps: int = 6000
    min_votes_required: int = 1
    lease_ttl_seconds: float = 60.0
    max_workers: int = 4


def final_outcome(proposed: Outcome | None, dispute: Tally, policy: LifecyclePolicy) -> Outcome:
    """Outcome to finalize with: overturned when the dispute carried, else kept."""

    if proposed is None:
        raise ConsistencyError("Entity has no proposed outcome to finalize")
    if dispute.meets(policy.dispute_threshold_bps, min_votes=policy.min_votes_required):
        return proposed.overturned()
    return proposed


def finalization_trigger(
    entity: Entity, now: datetime, policy: LifecyclePolicy
) -> Trigger | None:
    """Return why ``entity`` is due for finalization at ``now``, if it is."""

    if entity.state is EntityState.RESOLVING:
        since = entity.resolving_at or entity.state_changed_at
        if since is not None and now - since >= policy.resolution_delay:
            return Trigger.RESOLUTION_ELAPSED
    elif entity.state is EntityState.DISPUTED:
        if entity.dispute_aggregated_at is not None:
            return Trigger.DISPUTE_AGGREGATED
        since = entity.disputed_at or entity.state_changed_at
        if since is not None and now - since >= policy.dispute_window:
            return Trigger.DISPUTE_WINDOW_ELAPSED
    return None


class LifecycleMonitor:
    """Drives time and vote triggered transitions through the ledger.

    Ledger calls go through a circuit breaker; while it is open, transitions
    are escalated as alerts instead of being retried.
    """

    def __init__(
        self,
        *,
        unit_of_work_factory: UnitOfWorkFactory,
        ledger: LedgerPort,
        leases: LeaseManager,
        publisher: Publisher,
        alerter: Alerter,
        breaker: CircuitBreaker | None = None,
        policy: LifecyclePolicy | None = None,
        clock: Clock = utcnow,
        holder: str | None = None,
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self._ledger = ledger
        self._leases = leases
        self._publisher = publisher
        self._alerter = alerter
        self.breaker = breaker or CircuitBreaker()
        self.policy = policy or LifecyclePolicy()
        self._clock = clock
        self.holder = holder or f"lifecycle-{uuid.uuid4().hex[:12]}"
        self._guard = SweepGuard("lifecycle-sweep")
        self._stuck_alerted: set[tuple[str, datetime]] = set()
        self._stuck_lock = threading.Lock()

    # Sweep ------------------------------------------------------------------

    def run_sweep(self, now: datetime | None = None) -> SweepSummary:
        summary = SweepSummary(name="lifecycle")
        if not self._guard.try_enter():
            log.warning("lifecycle sweep still running, skipping this run")
            summary.overlapped = True
            return summary
        try:
            at = now or self._clock()
            with self._uow_factory() as uow:
                entities = uow.repositories.entities.list_non_terminal()
            self._flag_stuck(entities, at)
            due = [e.id for e in entities if finalization_trigger(e, at, self.policy) is not None]
            log.info(
                "lifecycle: %d non-terminal, %d due (breaker %s)",
                len(entities),
                len(due),
                self.breaker.state,
            )
            fan_out(
                summary,
                due,
                lambda entity_id: self.finalize_if_due(entity_id, at),
                max_workers=self.policy.max_workers,
            )
        finally:
            self._guard.exit()
        log.info("%s", summary)
        return summary

    def finalize_if_due(self, entity_id: str, now: datetime | None = None) -> str | None:
        """Finalize ``entity_id`` if its guard still holds once the lease is taken."""

        at = now or self._clock()
        with hold_lease(
            self._leases, entity_lease_key(entity_id), self.holder, self.policy.lease_ttl_seconds
        ):
            with self._uow_factory() as uow:
                entity = uow.repositories.entities.get(entity_id)
                if entity is None:
                    return None
                trigger = finalization_trigger(entity, at, self.policy)
                if trigger is None:
                    return None
                from_state = entity.state
                dispute = (
                    uow.repositories.votes.tally(entity_id, VoteType.DISPUTE)
                    if from_state is EntityState.DISPUTED
                    else Tally()
                )
                proposed = entity.proposed_outcome

            validate_transition(from_state, EntityState.FINALIZED, trigger)
            try:
                outcome = final_outcome(proposed, dispute, self.policy)
            except ConsistencyError as exc:
                self._record_attempt(
                    entity_id, from_state, EntityState.FINALIZED, trigger, error=exc
                )
                self._alert_failure(entity_id, from_state, EntityState.FINALIZED, exc)
                raise

            def apply(target: Entity) -> None:
                target.final_outcome = outcome

            return self._transition(
                entity_id,
                from_state,
                EntityState.FINALIZED,
                trigger,
                FINALIZE_MARKET,
                {"outcome": str(outcome)},
                apply,
            )

    def _flag_stuck(self, entities: list[Entity], now: datetime) -> None:
        for entity in entities:
            changed = entity.state_changed_at
            if changed is None or now - changed < self.policy.stuck_window:
                continue
            key = (entity.id, changed)
            with self._stuck_lock:
                if key in self._stuck_alerted:
                    continue
                self._stuck_alerted.add(key)
            log.warning("Entity %s stuck in %s since %s", entity.id, entity.state, changed)
            self._alerter.raise_alert(
                AlertType.ENTITY_STUCK,
                Severity.WARNING,
                {
                    "entity_id": entity.id,
                    "state": str(entity.state),
                    "state_changed_at": changed.isoformat(),
                    "days": (now - changed).days,
                },
            )

    # Administrative transitions --------------------------------------------

    def activate(self, entity_id: str) -> str:
        return self._manual(entity_id, EntityState.ACTIVE, Trigger.MANUAL, ACTIVATE_MARKET)

    def cancel(self, entity_id: str) -> str:
        return self._manual(entity_id, EntityState.CANCELLED, Trigger.ADMINISTRATIVE, CANCEL_MARKET)

    def _manual(
        self, entity_id: str, to_state: EntityState, trigger: Trigger, instruction: str
    ) -> str:
        with hold_lease(
            self._leases, entity_lease_key(entity_id), self.holder, self.policy.lease_ttl_seconds
        ):
            with self._uow_factory() as uow:
                entity = uow.repositories.entities.get(entity_id)
                if entity is None:
                    raise EntityNotFoundError(entity_id)
                from_state = entity.state
            validate_transition(from_state, to_state, trigger)
            return self._transition(entity_id, from_state, to_state, trigger, instruction, {})

    # Shared ledger path -----------------------------------------------------

    def _transition(
        self,
        entity_id: str,
        from_state: EntityState,
        to_state: EntityState,
        trigger: Trigger,
        instruction: str,
        args: Mapping[str, Any],
        apply: Callable[[Entity], None] | None = None,
    ) -> str:
        try:
            signature = self.breaker.call(
                lambda: self._ledger.submit_signed_instruction(
                    self._ledger.program_address, instruction, [entity_id], args
                ),
                failure_types=(TransientLedgerError,),
            )
        except LedgerError as exc:
            self._record_attempt(entity_id, from_state, to_state, trigger, error=exc)
            self._alert_failure(entity_id, from_state, to_state, exc)
            raise

        now = self._clock()
        with self._uow_factory() as uow:
            uow.repositories.transition_attempts.add(
                TransitionAttempt(
                    entity_id=entity_id,
                    from_state=from_state,
                    to_state=to_state,
                    trigger=trigger,
                    success=True,
                    ledger_tx_signature=signature,
                    attempted_at=now,
                )
            )
            entity = uow.repositories.entities.get(entity_id)
            if entity is not None and entity.state is from_state:
                entity.advance(to_state, at=now)
                if apply is not None:
                    apply(entity)
            uow.commit()

        log.info(
            "%s: %s -> %s (%s), signature %s", entity_id, from_state, to_state, trigger, signature
        )
        self._publisher.publish(
            Channel.ENTITY_STATE_CHANGED,
            {
                "entity_id": entity_id,
                "from_state": str(from_state),
                "to_state": str(to_state),
                "trigger": str(trigger),
                "signature": signature,
            },
        )
        return str(to_state)

    def _record_attempt(
        self,
        entity_id: str,
        from_state: EntityState,
        to_state: EntityState,
        trigger: Trigger,
        *,
        error: Exception,
    ) -> None:
        with self._uow_factory() as uow:
            uow.repositories.transition_attempts.add(
                TransitionAttempt(
                    entity_id=entity_id,
                    from_state=from_state,
                    to_state=to_state,
                    trigger=trigger,
                    success=False,
                    error=f"{type(error).__name__}: {error}",
                    attempted_at=self._clock(),
                )
            )
            uow.commit()

    def _alert_failure(
        self,
        entity_id: str,
        from_state: EntityState,
        to_state: EntityState,
        exc: Exception,
    ) -> None:
        payload = {
            "entity_id": entity_id,
            "from_state": str(from_state),
            "to_state": str(to_state),
            "error": str(exc),
        }
        if isinstance(exc, CircuitOpenError):
            payload["circuit"] = str(self.breaker.state)
            self._alerter.raise_alert(AlertType.CIRCUIT_OPEN, Severity.WARNING, payload)
        else:
            payload["error_type"] = type(exc).__name__
            self._alerter.raise_alert(
                AlertType.LIFECYCLE_TRANSITION_FAILED, Severity.CRITICAL, payload
            )
