"""Idempotent ingestion of pushed ledger notifications."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from marketsync.domain.clock import utcnow
from marketsync.domain.errors import DuplicateEventError, EventDecodingError
from marketsync.domain.indexing.events import UnknownEvent, new_entity
from marketsync.domain.model import AlertType, Channel, Severity

if TYPE_CHECKING:
    from collections.abc import Sequence

    from marketsync.domain.clock import Clock
    from marketsync.domain.model import LedgerEvent
    from marketsync.domain.ports import Alerter, EventDecoder, Publisher, UnitOfWorkFactory

log = logging.getLogger(__name__)


@dataclass(slots=True)
class AcceptResult:
    received: int = 0
    accepted: list[str] = field(default_factory=list)
    duplicates: list[str] = field(default_factory=list)


class EventIndexer:
    """Stores raw ledger events exactly once and applies them in slot order.

    ``accept`` is the fast path used by the inbound endpoint; ``process`` does
    the decoding and entity update and may run later on a worker.
    """

    def __init__(
        self,
        *,
        unit_of_work_factory: UnitOfWorkFactory,
        decoder: EventDecoder,
        publisher: Publisher,
        alerter: Alerter,
        clock: Clock = utcnow,
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self._decode = decoder
        self._publisher = publisher
        self._alerter = alerter
        self._clock = clock

    def accept(self, events: Sequence[LedgerEvent]) -> AcceptResult:
        """Durably store the events not seen before; duplicates are no-ops."""

        result = AcceptResult(received=len(events))
        batch: dict[str, LedgerEvent] = {}
        for event in events:
            if event.transaction_signature in batch:
                result.duplicates.append(event.transaction_signature)
            else:
                batch[event.transaction_signature] = event
        if not batch:
            return result

        with self._uow_factory() as uow:
            existing = uow.repositories.ledger_events.existing_signatures(list(batch))
        fresh = [event for sig, event in batch.items() if sig not in existing]
        result.duplicates.extend(sig for sig in batch if sig in existing)

        try:
            with self._uow_factory() as uow:
                for event in fresh:
                    uow.repositories.ledger_events.add(event)
                uow.commit()
            result.accepted.extend(event.transaction_signature for event in fresh)
        except DuplicateEventError:
            # A concurrent delivery won the race for at least one row.
            log.info("Concurrent delivery detected, storing %d event(s) one by one", len(fresh))
            for event in fresh:
                self._accept_one(replace(event, id=None), result)

        if result.duplicates:
            log.info("Ignored %d duplicate notification(s)", len(result.duplicates))
        return result

    def _accept_one(self, event: LedgerEvent, result: AcceptResult) -> None:
        try:
            with self._uow_factory() as uow:
                uow.repositories.ledger_events.add(event)
                uow.commit()
        except DuplicateEventError:
            result.duplicates.append(event.transaction_signature)
        else:
            result.accepted.append(event.transaction_signature)

    def process(self, signature: str) -> bool:
        """Decode and apply one stored event. Returns whether it changed the entity.

        Stale events (slot not newer than the entity's sequence) are marked
        processed without touching the entity.
        """

        now = self._clock()
        with self._uow_factory() as uow:
            row = uow.repositories.ledger_events.get(signature)
            if row is None:
                log.warning("No stored ledger event %s", signature)
                return False
            if row.is_processed:
                return False

            try:
                event = self._decode(row)
            except EventDecodingError as exc:
                row.error = str(exc)
                row.processed_at = now
                uow.commit()
                log.warning("Could not decode %s (%s): %s", signature, row.event_type, exc)
                self._alerter.raise_alert(
                    AlertType.EVENT_PROCESSING_FAILED,
                    Severity.WARNING,
                    {"signature": signature, "event_type": row.event_type, "error": str(exc)},
                )
                return False

            if isinstance(event, UnknownEvent):
                row.processed_at = now
                uow.commit()
                log.info("Skipping unknown ledger event %s (%s)", signature, event.event_type)
                return False

            entities = uow.repositories.entities
            entity = entities.get(event.entity_id)
            if entity is None:
                entity = new_entity(event)
                entities.add(entity)
                log.info("Tracking new entity %s", entity.id)
            previous = entity.state

            applied = entity.observe_sequence(event.slot)
            if applied:
                event.apply_to(entity, at=now)
            else:
                log.debug(
                    "Stale event %s for %s: slot %d <= %d",
                    signature,
                    entity.id,
                    event.slot,
                    entity.sequence,
                )
            row.entity_id = row.entity_id or event.entity_id
            row.processed_at = now
            current = entity.state
            uow.commit()

        if applied and current is not previous:
            self._publisher.publish(
                Channel.ENTITY_STATE_CHANGED,
                {
                    "entity_id": event.entity_id,
                    "from_state": str(previous),
                    "to_state": str(current),
                    "signature": signature,
                    "slot": event.slot,
                },
            )
        return applied

    def ingest(self, events: Sequence[LedgerEvent]) -> AcceptResult:
        """Accept and process inline."""

        result = self.accept(events)
        for signature in self._slot_ordered(events, result.accepted):
            self.process_safely(signature)
        return result

    def process_pending(self, *, limit: int | None = None) -> int:
        """Process stored events that were never stamped, oldest slot first."""

        with self._uow_factory() as uow:
            pending = [
                row.transaction_signature
                for row in uow.repositories.ledger_events.list_unprocessed(limit=limit)
            ]
        for signature in pending:
            self.process_safely(signature)
        if pending:
            log.info("Processed %d pending ledger event(s)", len(pending))
        return len(pending)

    def process_safely(self, signature: str) -> bool:
        """``process`` with per-event isolation; failures stay on the pending list."""

        try:
            return self.process(signature)
        except Exception as exc:
            log.exception("Processing ledger event %s failed", signature)
            self._alerter.raise_alert(
                AlertType.EVENT_PROCESSING_FAILED,
                Severity.CRITICAL,
                {"signature": signature, "error": str(exc), "error_type": type(exc).__name__},
            )
            return False

    @staticmethod
    def _slot_ordered(events: Sequence[LedgerEvent], signatures: Sequence[str]) -> list[str]:
        wanted = set(signatures)
        slots = {
            e.transaction_signature: e.slot for e in events if e.transaction_signature in wanted
        }
        return sorted(slots, key=lambda sig: slots[sig])
