"""Service authority key handling and instruction signing."""

from __future__ import annotations

import base64
import binascii
import json
import uuid
from typing import Any

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

_SEED_LENGTH = 32
_KEYPAIR_LENGTH = 64


def canonical_json_bytes(value: Any) -> bytes:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode(
        "utf-8"
    )


def _decode_secret(secret: str) -> bytes:
    text = secret.strip()
    if text.startswith("["):
        try:
            raw = bytes(json.loads(text))
        except (ValueError, TypeError) as exc:
            raise ValueError("Authority key is not a JSON byte array") from exc
    else:
        try:
            raw = base64.b64decode(text, validate=True)
        except binascii.Error as exc:
            raise ValueError("Authority key is not valid base64") from exc
    if len(raw) == _KEYPAIR_LENGTH:
        # keypair files store seed followed by public key
        raw = raw[:_SEED_LENGTH]
    if len(raw) != _SEED_LENGTH:
        raise ValueError("Invalid Ed25519 private key length")
    return raw


class AuthoritySigner:
    """Signs instruction envelopes with the service authority key."""

    def __init__(self, private_key: Ed25519PrivateKey) -> None:
        self._private_key = private_key
        public_raw = private_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
        self.public_key = base64.b64encode(public_raw).decode("ascii")

    @classmethod
    def from_secret(cls, secret: str) -> AuthoritySigner:
        return cls(Ed25519PrivateKey.from_private_bytes(_decode_secret(secret)))

    @classmethod
    def generate(cls) -> AuthoritySigner:
        return cls(Ed25519PrivateKey.generate())

    def sign(self, message: bytes) -> str:
        return "ed25519:" + base64.b64encode(self._private_key.sign(message)).decode("ascii")

    def signed_envelope(
        self,
        *,
        program: str,
        instruction: str,
        accounts: list[str],
        args: dict[str, Any],
    ) -> dict[str, Any]:
        """Instruction params plus authority, nonce and a signature over the rest."""

        body: dict[str, Any] = {
            "program": program,
            "instruction": instruction,
            "accounts": accounts,
            "args": args,
            "authority": self.public_key,
            "nonce": uuid.uuid4().hex,
        }
        return {**body, "signature": self.sign(canonical_json_bytes(body))}
