"""Inbound ledger notification webhook."""

from __future__ import annotations

from .api import build_router, create_app
from .schema import AcceptResponse, LedgerNotification
from .signature import compute_signature, verify_signature
from .translator import (
    KNOWN_EVENT_TYPES,
    NotificationFormatError,
    decode_event,
    parse_notifications,
)
from .worker import EventQueueWorker

__all__ = [
    "KNOWN_EVENT_TYPES",
    "AcceptResponse",
    "EventQueueWorker",
    "LedgerNotification",
    "NotificationFormatError",
    "build_router",
    "compute_signature",
    "create_app",
    "decode_event",
    "parse_notifications",
    "verify_signature",
]
