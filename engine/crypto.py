"""
engine.crypto: Ed25519 key pairs and transaction signatures.

Keys are derived deterministically from a seed and a counter so that two
ledgers created with the same configuration hand out the same identities.
Ed25519 signatures are themselves deterministic, which keeps receipts and
transaction hashes reproducible across runs.

Public keys travel as lowercase hex strings (the "identity" of a signer).
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field

from cryptography.exceptions import InvalidSignature as _CryptoInvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

_KEY_DOMAIN = b"ledger-engine/ed25519/v1"


def _public_hex(sk: Ed25519PrivateKey) -> str:
    raw = sk.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return raw.hex()


@dataclass(frozen=True)
class KeyPair:
    """An Ed25519 key pair; `public_key` is the hex identity."""

    public_key: str
    private_key: Ed25519PrivateKey = field(repr=False, compare=False)

    @classmethod
    def from_seed(cls, seed: bytes) -> "KeyPair":
        if len(seed) != 32:
            raise ValueError("Ed25519 seed must be 32 bytes")
        sk = Ed25519PrivateKey.from_private_bytes(seed)
        return cls(public_key=_public_hex(sk), private_key=sk)

    @classmethod
    def derive(cls, seed: str, index: int) -> "KeyPair":
        """Derive the `index`-th key pair of a named seed."""
        h = hashlib.sha3_256()
        h.update(_KEY_DOMAIN)
        h.update(seed.encode("utf-8"))
        h.update(int(index).to_bytes(8, "big"))
        return cls.from_seed(h.digest())

    def sign(self, message: bytes) -> bytes:
        return self.private_key.sign(message)


def verify(public_key: str, message: bytes, signature: bytes) -> bool:
    """Return True iff `signature` is a valid Ed25519 signature of `message`."""
    try:
        pk = Ed25519PublicKey.from_public_bytes(bytes.fromhex(public_key))
        pk.verify(signature, message)
    except (_CryptoInvalidSignature, ValueError):
        return False
    return True


__all__ = ["KeyPair", "verify"]
