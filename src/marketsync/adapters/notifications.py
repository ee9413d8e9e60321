"""Outbound publishers and alerters. None of them raise on transport failure."""

from __future__ import annotations

import json
import logging
import queue
import threading
from typing import TYPE_CHECKING, Any

import httpx
import redis

from marketsync.domain.clock import utcnow
from marketsync.domain.model import Severity

if TYPE_CHECKING:
    from collections.abc import Mapping

    from marketsync.domain.clock import Clock
    from marketsync.domain.model import AlertType, Channel

log = logging.getLogger(__name__)

_STOP = object()

_LOG_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.CRITICAL: logging.CRITICAL,
}


def _dumps(payload: Mapping[str, Any]) -> str:
    return json.dumps(dict(payload), default=str, sort_keys=True)


class LoggingPublisher:
    def publish(self, channel: Channel, event: Mapping[str, Any]) -> None:
        log.info("publish %s %s", channel, _dumps(event))


class RedisPublisher:
    """Publishes JSON messages on ``{prefix}:{channel}``."""

    def __init__(self, client: redis.Redis, *, key_prefix: str = "marketsync") -> None:
        self._client = client
        self._prefix = key_prefix

    def publish(self, channel: Channel, event: Mapping[str, Any]) -> None:
        try:
            receivers = self._client.publish(f"{self._prefix}:{channel}", _dumps(event))
        except redis.RedisError as exc:
            log.warning("Publishing on %s failed: %s", channel, exc)
            return
        log.debug("Published on %s to %d subscriber(s)", channel, receivers)


class LoggingAlerter:
    def raise_alert(
        self, alert_type: AlertType, severity: Severity, payload: Mapping[str, Any]
    ) -> None:
        log.log(_LOG_LEVELS[severity], "ALERT %s [%s] %s", alert_type, severity, _dumps(payload))


class WebhookAlerter:
    """Logs every alert at once and posts it as JSON to an operator webhook.

    Posting happens on a background thread so callers never wait on the
    webhook. A full queue drops the post with a warning; the alert is still in
    the log. ``close`` delivers what is queued before returning.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout_seconds: float = 5.0,
        transport: httpx.BaseTransport | None = None,
        clock: Clock = utcnow,
        maxsize: int = 1_000,
    ) -> None:
        self._url = url
        self._client = httpx.Client(timeout=timeout_seconds, transport=transport)
        self._clock = clock
        self._fallback = LoggingAlerter()
        self._queue: queue.Queue[object] = queue.Queue(maxsize=maxsize)
        self.dropped = 0
        self._thread = threading.Thread(target=self._run, name="alert-delivery", daemon=True)
        self._thread.start()

    def raise_alert(
        self, alert_type: AlertType, severity: Severity, payload: Mapping[str, Any]
    ) -> None:
        self._fallback.raise_alert(alert_type, severity, payload)
        body = {
            "type": str(alert_type),
            "severity": str(severity),
            "raised_at": self._clock().isoformat(),
            "payload": json.loads(_dumps(payload)),
        }
        try:
            self._queue.put_nowait(body)
        except queue.Full:
            self.dropped += 1
            log.warning("Alert queue full, %s alert not delivered", alert_type)

    def _run(self) -> None:
        while True:
            body = self._queue.get()
            try:
                if body is _STOP:
                    return
                self._deliver(body)  # type: ignore[arg-type]
            finally:
                self._queue.task_done()

    def _deliver(self, body: dict[str, Any]) -> None:
        try:
            response = self._client.post(self._url, json=body)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            log.warning("Delivering %s alert failed: %s", body["type"], exc)

    def close(self, timeout: float | None = 10.0) -> None:
        self._queue.put(_STOP)
        self._thread.join(timeout)
        if self._thread.is_alive():
            log.warning("Alert delivery did not finish within %.1fs", timeout or 0)
        self._client.close()
