"""Backstop sweep comparing local entities with ledger account state."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from marketsync.domain.clock import utcnow
from marketsync.domain.model import AlertType, Channel, ReconciliationDiscrepancy, Severity
from marketsync.domain.sweeps import SweepGuard, SweepSummary, fan_out

if TYPE_CHECKING:
    from marketsync.domain.clock import Clock
    from marketsync.domain.model import Entity
    from marketsync.domain.ports import Alerter, LedgerPort, Publisher, UnitOfWorkFactory
    from marketsync.domain.ports.ledger import LedgerAccountState

log = logging.getLogger(__name__)


def describe(state: object, proposed: object, final: object) -> str:
    text = str(state)
    if proposed is not None or final is not None:
        text += f" proposed={proposed or '-'} final={final or '-'}"
    return text


def in_sync(entity: Entity, snapshot: LedgerAccountState) -> bool:
    return (
        entity.state is snapshot.state
        and entity.proposed_outcome == snapshot.proposed_outcome
        and entity.final_outcome == snapshot.final_outcome
    )


class Reconciler:
    """Reads every tracked entity straight from the ledger and heals drift.

    The ledger always wins: a mismatch is written down, overwritten locally and
    escalated, all in one go.
    """

    def __init__(
        self,
        *,
        unit_of_work_factory: UnitOfWorkFactory,
        ledger: LedgerPort,
        publisher: Publisher,
        alerter: Alerter,
        max_workers: int = 4,
        clock: Clock = utcnow,
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self._ledger = ledger
        self._publisher = publisher
        self._alerter = alerter
        self.max_workers = max_workers
        self._clock = clock
        self._guard = SweepGuard("reconciliation-sweep")

    def run_sweep(self) -> SweepSummary:
        summary = SweepSummary(name="reconciliation")
        if not self._guard.try_enter():
            log.warning("reconciliation sweep still running, skipping this run")
            summary.overlapped = True
            return summary
        try:
            with self._uow_factory() as uow:
                entity_ids = uow.repositories.entities.list_ids()
            fan_out(summary, entity_ids, self.reconcile_entity, max_workers=self.max_workers)
        finally:
            self._guard.exit()
        log.info("%s", summary)
        return summary

    def reconcile_entity(self, entity_id: str) -> str | None:
        snapshot = self._ledger.read_account_state(entity_id)
        if snapshot is None:
            log.warning("Ledger has no account for tracked entity %s", entity_id)
            self._alerter.raise_alert(
                AlertType.LEDGER_ACCOUNT_MISSING, Severity.WARNING, {"entity_id": entity_id}
            )
            return "missing"

        now = self._clock()
        with self._uow_factory() as uow:
            entity = uow.repositories.entities.get(entity_id)
            if entity is None:
                return None
            if in_sync(entity, snapshot):
                if snapshot.slot > entity.sequence:
                    entity.sequence = snapshot.slot
                    uow.commit()
                return "in_sync"
            if snapshot.slot < entity.sequence:
                log.info(
                    "Ledger snapshot of %s at slot %d is older than applied slot %d, skipping",
                    entity_id,
                    snapshot.slot,
                    entity.sequence,
                )
                return "stale_snapshot"

            local = describe(entity.state, entity.proposed_outcome, entity.final_outcome)
            ledger = describe(snapshot.state, snapshot.proposed_outcome, snapshot.final_outcome)
            previous = entity.state
            if entity.state is not snapshot.state:
                entity.advance(snapshot.state, at=now)
            entity.proposed_outcome = snapshot.proposed_outcome
            entity.final_outcome = snapshot.final_outcome
            entity.sequence = max(entity.sequence, snapshot.slot)
            entity.updated_at = now
            uow.repositories.discrepancies.add(
                ReconciliationDiscrepancy(
                    entity_id=entity_id,
                    local_state=local,
                    ledger_state=ledger,
                    detected_at=now,
                    resolved_at=now,
                )
            )
            uow.commit()

        log.warning("Drift on %s: local %s, ledger %s; corrected", entity_id, local, ledger)
        self._alerter.raise_alert(
            AlertType.STATE_DRIFT,
            Severity.WARNING,
            {"entity_id": entity_id, "local_state": local, "ledger_state": ledger},
        )
        if previous is not snapshot.state:
            self._publisher.publish(
                Channel.ENTITY_STATE_CHANGED,
                {
                    "entity_id": entity_id,
                    "from_state": str(previous),
                    "to_state": str(snapshot.state),
                    "source": "reconciliation",
                },
            )
        return "corrected"
