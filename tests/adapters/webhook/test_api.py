from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import pytest
from fastapi.testclient import TestClient

from marketsync.adapters.webhook import EventQueueWorker, compute_signature, create_app
from marketsync.adapters.webhook.translator import decode_event
from marketsync.config import SIGNATURE_HEADER
from marketsync.domain.indexing import EventIndexer
from marketsync.domain.model import EntityState, Outcome
from tests.helpers.governance import load_entity

if TYPE_CHECKING:
    from collections.abc import Iterator

    from marketsync.domain.ports import UnitOfWorkFactory
    from tests.helpers.governance import FrozenClock, RecordingAlerter, RecordingPublisher

SECRET = "webhook-secret"


def _body(items: list[dict[str, Any]]) -> bytes:
    return json.dumps(items).encode()


def _headers(body: bytes, secret: str = SECRET) -> dict[str, str]:
    return {SIGNATURE_HEADER: compute_signature(secret, body), "content-type": "application/json"}


def _notification(signature: str, slot: int, event_type: str, **data: Any) -> dict[str, Any]:
    return {
        "signature": signature,
        "slot": slot,
        "type": event_type,
        "market": "m1",
        "timestamp": 1_735_732_800 + slot,
        "data": data,
    }


@pytest.fixture
def indexer(
    uow_factory: UnitOfWorkFactory,
    publisher: RecordingPublisher,
    alerter: RecordingAlerter,
    clock: FrozenClock,
) -> EventIndexer:
    return EventIndexer(
        unit_of_work_factory=uow_factory,
        decoder=decode_event,
        publisher=publisher,
        alerter=alerter,
        clock=clock,
    )


@pytest.fixture
def worker(indexer: EventIndexer) -> EventQueueWorker:
    return EventQueueWorker(indexer, maxsize=100)


@pytest.fixture
def client(
    indexer: EventIndexer, worker: EventQueueWorker, clock: FrozenClock
) -> Iterator[TestClient]:
    app = create_app(indexer=indexer, worker=worker, secret=SECRET, clock=clock)
    with TestClient(app) as test_client:
        yield test_client


def test_signed_batch_is_accepted_and_applied(
    client: TestClient, worker: EventQueueWorker, uow_factory: UnitOfWorkFactory
) -> None:
    body = _body(
        [
            _notification("tx-2", 2, "MarketResolved", proposedOutcome=False),
            _notification("tx-1", 1, "MarketActivated"),
        ]
    )

    response = client.post("/webhooks/ledger", content=body, headers=_headers(body))

    assert response.status_code == 202
    assert response.json() == {"received": 2, "accepted": 2, "duplicates": 0}
    worker.drain()
    entity = load_entity(uow_factory, "m1")
    assert entity.state is EntityState.RESOLVING
    assert entity.proposed_outcome is Outcome.NO
    assert entity.sequence == 2


def test_redelivery_is_counted_as_duplicate(client: TestClient, worker: EventQueueWorker) -> None:
    body = _body([_notification("tx-1", 1, "MarketCreated")])
    client.post("/webhooks/ledger", content=body, headers=_headers(body))
    worker.drain()

    response = client.post("/webhooks/ledger", content=body, headers=_headers(body))

    assert response.json() == {"received": 1, "accepted": 0, "duplicates": 1}
    assert worker.status()["processed"] == 1


@pytest.mark.parametrize(
    "headers",
    [
        {},
        {SIGNATURE_HEADER: "deadbeef"},
        {SIGNATURE_HEADER: b"\xe9" * 64},
    ],
)
def test_unsigned_or_badly_signed_batch_is_rejected(
    client: TestClient, uow_factory: UnitOfWorkFactory, headers: dict[str, str | bytes]
) -> None:
    body = _body([_notification("tx-1", 1, "MarketCreated")])

    response = client.post("/webhooks/ledger", content=body, headers=headers)

    assert response.status_code == 401
    with uow_factory() as uow:
        assert uow.repositories.ledger_events.get("tx-1") is None


def test_wrong_secret_is_rejected(client: TestClient) -> None:
    body = _body([_notification("tx-1", 1, "MarketCreated")])

    response = client.post(
        "/webhooks/ledger", content=body, headers=_headers(body, secret="other")
    )

    assert response.status_code == 401


@pytest.mark.parametrize(
    "body",
    [
        b"not json",
        b'{"signature": "tx-1"}',
        _body([{"signature": "tx-1", "slot": -1, "type": "MarketCreated"}]),
        _body([{"slot": 1, "type": "MarketCreated"}]),
        _body([{"signature": "tx-1", "slot": 1, "type": "MarketCreated", "timestamp": 10**20}]),
    ],
)
def test_malformed_batch_is_rejected(client: TestClient, body: bytes) -> None:
    response = client.post("/webhooks/ledger", content=body, headers=_headers(body))

    assert response.status_code == 400


def test_health_reports_worker(client: TestClient) -> None:
    response = client.get("/webhooks/health")

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["worker"]["running"] is True


def test_worker_stops_with_app(
    indexer: EventIndexer, worker: EventQueueWorker, clock: FrozenClock
) -> None:
    app = create_app(indexer=indexer, worker=worker, secret=SECRET, clock=clock)

    with TestClient(app):
        assert worker.running

    assert not worker.running
