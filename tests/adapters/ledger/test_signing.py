from __future__ import annotations

import base64
import json

import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from marketsync.adapters.ledger import AuthoritySigner
from marketsync.adapters.ledger.signing import canonical_json_bytes


def _seed() -> bytes:
    return bytes(range(32))


def test_secret_formats_yield_the_same_key() -> None:
    seed = _seed()
    public = (
        Ed25519PrivateKey.from_private_bytes(seed)
        .public_key()
        .public_bytes(Encoding.Raw, PublicFormat.Raw)
    )

    from_base64 = AuthoritySigner.from_secret(base64.b64encode(seed).decode())
    from_keypair = AuthoritySigner.from_secret(json.dumps(list(seed + public)))

    assert from_base64.public_key == from_keypair.public_key
    assert from_base64.public_key == base64.b64encode(public).decode()


@pytest.mark.parametrize(
    "secret", ["not base64!", "[1, 2, 3]", base64.b64encode(b"short").decode()]
)
def test_invalid_secret_rejected(secret: str) -> None:
    with pytest.raises(ValueError, match="Authority key|Invalid Ed25519"):
        AuthoritySigner.from_secret(secret)


def test_canonical_json_is_key_order_independent() -> None:
    assert canonical_json_bytes({"b": 1, "a": [1, 2]}) == canonical_json_bytes(
        {"a": [1, 2], "b": 1}
    )
    assert canonical_json_bytes({"a": "é"}) == '{"a":"é"}'.encode()
