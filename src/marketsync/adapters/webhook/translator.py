"""Translate notifications into stored ledger events, and stored events into domain events."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from marketsync.domain.errors import EventDecodingError
from marketsync.domain.indexing.events import (
    DisputeAggregated,
    DisputeRaised,
    MarketActivated,
    MarketCancelled,
    MarketCreated,
    MarketFinalized,
    MarketResolved,
    MarketStateChanged,
    ProposalApproved,
    UnknownEvent,
)
from marketsync.domain.model import LedgerEvent

from .schema import (
    NOTIFICATION_BATCH,
    ApprovedData,
    DisputeAggregatedData,
    FinalizedData,
    LedgerNotification,
    ResolvedData,
    StateChangedData,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from marketsync.domain.indexing.events import DomainEvent


class NotificationFormatError(ValueError):
    """The delivered body is not a batch of ledger notifications."""


def parse_notifications(body: bytes, *, received_at: datetime) -> list[LedgerEvent]:
    """Validate a delivered JSON array and turn each item into a ``LedgerEvent``.

    The raw item is kept as the event payload so decoding can be redone later.
    """

    try:
        raw = json.loads(body)
    except ValueError as exc:
        raise NotificationFormatError(f"Body is not JSON: {exc}") from exc
    if not isinstance(raw, list):
        raise NotificationFormatError("Body must be a JSON array of notifications")
    try:
        notifications = NOTIFICATION_BATCH.validate_python(raw)
    except ValidationError as exc:
        raise NotificationFormatError(str(exc)) from exc
    return [
        to_ledger_event(notification, item, received_at=received_at)
        for notification, item in zip(notifications, raw, strict=True)
    ]


def to_ledger_event(
    notification: LedgerNotification, raw: Mapping[str, Any], *, received_at: datetime
) -> LedgerEvent:
    return LedgerEvent(
        transaction_signature=notification.signature,
        slot=notification.slot,
        event_type=notification.event_type,
        entity_id=notification.market,
        payload=dict(raw),
        block_time=_block_time(notification.timestamp),
        received_at=received_at,
    )


def _block_time(timestamp: int | None) -> datetime | None:
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp, tz=UTC)


# Decoding --------------------------------------------------------------------

type _Builder = Callable[[dict[str, Any], dict[str, Any]], DomainEvent]


def _approved(base: dict[str, Any], data: dict[str, Any]) -> DomainEvent:
    parsed = ApprovedData.model_validate(data)
    return ProposalApproved(**base, yes_votes=parsed.yes_votes, no_votes=parsed.no_votes)


def _resolved(base: dict[str, Any], data: dict[str, Any]) -> DomainEvent:
    return MarketResolved(
        **base, proposed_outcome=ResolvedData.model_validate(data).proposed_outcome
    )


def _dispute_aggregated(base: dict[str, Any], data: dict[str, Any]) -> DomainEvent:
    parsed = DisputeAggregatedData.model_validate(data)
    return DisputeAggregated(**base, yes_votes=parsed.yes_votes, no_votes=parsed.no_votes)


def _finalized(base: dict[str, Any], data: dict[str, Any]) -> DomainEvent:
    return MarketFinalized(**base, final_outcome=FinalizedData.model_validate(data).final_outcome)


def _state_changed(base: dict[str, Any], data: dict[str, Any]) -> DomainEvent:
    parsed = StateChangedData.model_validate(data)
    return MarketStateChanged(
        **base,
        state=parsed.state,
        proposed_outcome=parsed.proposed_outcome,
        final_outcome=parsed.final_outcome,
    )


def _plain(event_cls: type[DomainEvent]) -> _Builder:
    def build(base: dict[str, Any], data: dict[str, Any]) -> DomainEvent:
        _ = data
        return event_cls(**base)

    return build


_BUILDERS: dict[str, _Builder] = {
    "MarketCreated": _plain(MarketCreated),
    "MarketProposed": _plain(MarketCreated),
    "ProposalApproved": _approved,
    "MarketApproved": _approved,
    "MarketActivated": _plain(MarketActivated),
    "MarketResolved": _resolved,
    "DisputeRaised": _plain(DisputeRaised),
    "DisputeInitiated": _plain(DisputeRaised),
    "DisputeAggregated": _dispute_aggregated,
    "MarketFinalized": _finalized,
    "MarketCancelled": _plain(MarketCancelled),
    "MarketStateChanged": _state_changed,
}

KNOWN_EVENT_TYPES = frozenset(_BUILDERS)


def decode_event(row: LedgerEvent) -> DomainEvent:
    """Decode a stored event; unrecognised types become ``UnknownEvent``.

    Raises ``EventDecodingError`` when a recognised type has a bad payload.
    """

    try:
        notification = LedgerNotification.model_validate(row.payload)
    except ValidationError as exc:
        raise EventDecodingError(f"Malformed notification: {exc}") from exc
    entity_id = notification.market or row.entity_id
    base: dict[str, Any] = {
        "signature": row.transaction_signature,
        "slot": row.slot,
        "entity_id": entity_id or "",
        "block_time": row.block_time,
    }
    builder = _BUILDERS.get(notification.event_type)
    if builder is None:
        return UnknownEvent(**base, event_type=notification.event_type)
    if not entity_id:
        raise EventDecodingError(f"{notification.event_type} without a market")
    try:
        return builder(base, notification.data)
    except ValidationError as exc:
        raise EventDecodingError(f"Malformed {notification.event_type} data: {exc}") from exc
