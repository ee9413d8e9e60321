"""Fire-and-forget outbound collaborators."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping

    from marketsync.domain.model import AlertType, Channel, Severity


@runtime_checkable
class Publisher(Protocol):
    """Broadcasts domain notifications. Must not raise on transport failure."""

    def publish(self, channel: Channel, event: Mapping[str, Any]) -> None: ...


@runtime_checkable
class Alerter(Protocol):
    """Pages operators. Must not raise on transport failure."""

    def raise_alert(
        self, alert_type: AlertType, severity: Severity, payload: Mapping[str, Any]
    ) -> None: ...
