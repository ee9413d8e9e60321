"""Port that turns stored raw ledger events into typed domain events."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from marketsync.domain.indexing.events import DomainEvent
    from marketsync.domain.model import LedgerEvent

type EventDecoder = Callable[["LedgerEvent"], "DomainEvent"]
