from __future__ import annotations

import json
import logging
import threading
from typing import TYPE_CHECKING

import httpx
import redis

from marketsync.adapters.notifications import (
    LoggingAlerter,
    LoggingPublisher,
    RedisPublisher,
    WebhookAlerter,
)
from marketsync.domain.model import AlertType, Channel, Severity
from tests.helpers.governance import EPOCH, FrozenClock

if TYPE_CHECKING:
    import pytest


class BrokenRedis:
    def publish(self, channel: str, message: str) -> int:
        raise redis.ConnectionError(f"cannot publish on {channel}")


def test_webhook_alerter_posts_alert() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(204)

    alerter = WebhookAlerter(
        "https://ops.example.test/alerts",
        transport=httpx.MockTransport(handler),
        clock=FrozenClock(EPOCH),
    )
    try:
        alerter.raise_alert(AlertType.STATE_DRIFT, Severity.WARNING, {"entity_id": "m1"})
    finally:
        alerter.close()

    [request] = requests
    assert request.url == "https://ops.example.test/alerts"
    assert json.loads(request.content) == {
        "type": "state_drift",
        "severity": "warning",
        "raised_at": "2025-01-01T12:00:00+00:00",
        "payload": {"entity_id": "m1"},
    }


def test_webhook_alerter_survives_delivery_failure(caplog: pytest.LogCaptureFixture) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, request=request)

    alerter = WebhookAlerter(
        "https://ops.example.test/alerts", transport=httpx.MockTransport(handler)
    )
    with caplog.at_level(logging.WARNING):
        alerter.raise_alert(AlertType.ENTITY_STUCK, Severity.CRITICAL, {"entity_id": "m1"})
        alerter.close()

    assert "Delivering entity_stuck alert failed" in caplog.text


def test_webhook_alerter_does_not_wait_for_delivery() -> None:
    entered = threading.Event()
    release = threading.Event()
    delivered: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        entered.set()
        release.wait(timeout=5)
        delivered.append(json.loads(request.content)["type"])
        return httpx.Response(204)

    alerter = WebhookAlerter(
        "https://ops.example.test/alerts", transport=httpx.MockTransport(handler), maxsize=1
    )
    try:
        alerter.raise_alert(AlertType.CIRCUIT_OPEN, Severity.WARNING, {"entity_id": "m1"})
        assert entered.wait(timeout=5)
        alerter.raise_alert(AlertType.CIRCUIT_OPEN, Severity.WARNING, {"entity_id": "m2"})
        alerter.raise_alert(AlertType.CIRCUIT_OPEN, Severity.WARNING, {"entity_id": "m3"})

        assert delivered == []
        assert alerter.dropped == 1
    finally:
        release.set()
        alerter.close()

    assert delivered == ["circuit_open", "circuit_open"]


def test_logging_alerter_uses_severity_level(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO):
        LoggingAlerter().raise_alert(
            AlertType.CIRCUIT_OPEN, Severity.CRITICAL, {"entity_id": "m1"}
        )

    [record] = caplog.records
    assert record.levelno == logging.CRITICAL
    assert "circuit_open" in record.getMessage()


def test_publishers_never_raise(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO):
        LoggingPublisher().publish(Channel.TALLY_UPDATED, {"entity_id": "m1", "yes": 3})
        RedisPublisher(BrokenRedis()).publish(  # type: ignore[arg-type]
            Channel.ENTITY_STATE_CHANGED, {"entity_id": "m1"}
        )

    assert '"yes": 3' in caplog.text
    assert "Publishing on entity_state_changed failed" in caplog.text
