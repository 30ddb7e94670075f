"""
engine.addresses: typed ledger addresses.

An address is a plain string of the form ``<kind>_<network>1<40 hex chars>``,
e.g. ``resource_sim1c0ffee...``. `Address` is a `str` subclass, so it compares,
hashes and formats like the string it wraps, while exposing its kind.

Addresses are derived deterministically from a domain tag, the kind and a
per-transaction (or per-store) sequence number, so two ledgers fed the same
calls hand out the same addresses.
"""

from __future__ import annotations

import hashlib
from typing import Tuple

PACKAGE = "package"
COMPONENT = "component"
ACCOUNT = "account"
RESOURCE = "resource"

KINDS: Tuple[str, ...] = (PACKAGE, COMPONENT, ACCOUNT, RESOURCE)

HRP = "sim"


class Address(str):
    """A ledger address (package, component, account or resource)."""

    __slots__ = ()

    def __new__(cls, value: str) -> "Address":
        s = str(value)
        kind, sep, _ = s.partition("_")
        if not sep or kind not in KINDS:
            raise ValueError(f"not a ledger address: {value!r}")
        return super().__new__(cls, s)

    @property
    def kind(self) -> str:
        return self.partition("_")[0]

    @property
    def is_component(self) -> bool:
        """True for components and accounts (both hold state)."""
        return self.kind in (COMPONENT, ACCOUNT)

    def __repr__(self) -> str:
        return f"Address({str(self)!r})"


def derive_address(kind: str, domain: bytes, seq: int) -> Address:
    """
    Derive an address of `kind` from `domain` (e.g. a transaction hash) and a
    sequence number unique within that domain.
    """
    if kind not in KINDS:
        raise ValueError(f"unknown address kind: {kind!r}")
    h = hashlib.sha3_256()
    h.update(kind.encode("ascii"))
    h.update(b"\x00")
    h.update(bytes(domain))
    h.update(int(seq).to_bytes(8, "big"))
    return Address(f"{kind}_{HRP}1{h.hexdigest()[:40]}")


__all__ = [
    "Address",
    "derive_address",
    "PACKAGE",
    "COMPONENT",
    "ACCOUNT",
    "RESOURCE",
    "KINDS",
]
