"""Shared-secret signatures on inbound notification bodies."""

from __future__ import annotations

import hashlib
import hmac

from marketsync.domain.errors import AuthenticationError


def compute_signature(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(secret: str, body: bytes, provided: str | None) -> None:
    """Raise ``AuthenticationError`` unless ``provided`` signs ``body``."""

    if not provided:
        raise AuthenticationError("Missing notification signature")
    expected = compute_signature(secret, body).encode("ascii")
    # Header values may carry any latin-1 text; compare_digest only takes ASCII str.
    candidate = provided.strip().lower().encode("utf-8", "surrogateescape")
    if not hmac.compare_digest(expected, candidate):
        raise AuthenticationError("Notification signature mismatch")
