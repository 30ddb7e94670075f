"""
engine.state.store: in-memory substate store.

The store owns every piece of ledger state:

- packages:   address → PackageRecord (code bytes; append-only)
- components: address → ComponentRecord (encoded state + access rules)
- vaults:     vault id → VaultRecord (resource + amount)
- resources:  address → ResourceRecord (divisibility, metadata, supply)
- nonces:     public key → last consumed nonce

It performs no execution logic. Transactions are made atomic with
`snapshot()` / `restore()`: the executor takes a snapshot before applying
instructions and restores it when execution fails. Nonces are deliberately
outside snapshots so a failed transaction still consumes its nonce.
"""

from __future__ import annotations

import copy
import hashlib
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional

from ..addresses import RESOURCE, Address, derive_address
from ..errors import InvalidNonce, NotFound

# --------------------------------------------------------------------------- #
# Records
# --------------------------------------------------------------------------- #


@dataclass
class PackageRecord:
    address: Address
    code: bytes
    code_hash: str
    builtin: bool = False


@dataclass
class ComponentRecord:
    address: Address
    package: Address
    blueprint: str
    state: bytes
    access_rules: Any = None


@dataclass
class VaultRecord:
    vault_id: str
    resource: Address
    amount: Decimal = Decimal(0)


@dataclass
class ResourceRecord:
    address: Address
    divisibility: int = 18
    metadata: Dict[str, str] = field(default_factory=dict)
    total_supply: Decimal = Decimal(0)


@dataclass(frozen=True)
class Snapshot:
    components: Dict[Address, ComponentRecord]
    vaults: Dict[str, VaultRecord]
    resources: Dict[Address, ResourceRecord]
    packages: Dict[Address, PackageRecord]


# --------------------------------------------------------------------------- #
# Store
# --------------------------------------------------------------------------- #

NATIVE_TOKEN_METADATA = {"symbol": "SIM", "name": "Simulator Token"}


class InMemorySubstateStore:
    """Single-writer in-memory ledger state."""

    def __init__(self) -> None:
        self.packages: Dict[Address, PackageRecord] = {}
        self.components: Dict[Address, ComponentRecord] = {}
        self.vaults: Dict[str, VaultRecord] = {}
        self.resources: Dict[Address, ResourceRecord] = {}
        self.nonces: Dict[str, int] = {}
        self.native_token: Optional[Address] = None

    @classmethod
    def with_bootstrap(cls) -> "InMemorySubstateStore":
        """A store pre-populated with the native token resource."""
        store = cls()
        addr = derive_address(RESOURCE, b"bootstrap", 0)
        store.resources[addr] = ResourceRecord(address=addr, metadata=dict(NATIVE_TOKEN_METADATA))
        store.native_token = addr
        return store

    # ----------------------------- packages -------------------------------- #

    def put_package(self, address: Address, code: bytes, *, builtin: bool = False) -> PackageRecord:
        rec = PackageRecord(
            address=address,
            code=bytes(code),
            code_hash="0x" + hashlib.sha3_256(bytes(code)).hexdigest(),
            builtin=builtin,
        )
        self.packages[address] = rec
        return rec

    def get_package(self, address: str) -> PackageRecord:
        rec = self.packages.get(address)  # type: ignore[call-overload]
        if rec is None:
            raise NotFound(f"no package at {address}", kind="package", key=str(address))
        return rec

    # ---------------------------- components ------------------------------- #

    def get_component(self, address: str) -> ComponentRecord:
        rec = self.components.get(address)  # type: ignore[call-overload]
        if rec is None:
            raise NotFound(f"no component at {address}", kind="component", key=str(address))
        return rec

    # ------------------------------ vaults --------------------------------- #

    def get_vault(self, vault_id: str) -> VaultRecord:
        rec = self.vaults.get(vault_id)
        if rec is None:
            raise NotFound(f"no vault {vault_id}", kind="vault", key=vault_id)
        return rec

    # ----------------------------- resources ------------------------------- #

    def get_resource(self, address: str) -> ResourceRecord:
        rec = self.resources.get(address)  # type: ignore[call-overload]
        if rec is None:
            raise NotFound(f"no resource at {address}", kind="resource", key=str(address))
        return rec

    # ------------------------------ nonces --------------------------------- #

    def next_nonce(self, public_key: str) -> int:
        """Nonce the next transaction signed by `public_key` must carry."""
        return self.nonces.get(public_key, 0) + 1

    def consume_nonce(self, public_key: str, nonce: int) -> None:
        expected = self.next_nonce(public_key)
        if nonce != expected:
            raise InvalidNonce(
                f"nonce {nonce} rejected for {public_key[:16]}…, expected {expected}",
                expected=expected,
                got=nonce,
            )
        self.nonces[public_key] = nonce

    # ---------------------------- snapshots -------------------------------- #

    def snapshot(self) -> Snapshot:
        return Snapshot(
            components=copy.deepcopy(self.components),
            vaults=copy.deepcopy(self.vaults),
            resources=copy.deepcopy(self.resources),
            packages=dict(self.packages),
        )

    def restore(self, snap: Snapshot) -> None:
        self.components = snap.components
        self.vaults = snap.vaults
        self.resources = snap.resources
        self.packages = snap.packages


__all__ = [
    "PackageRecord",
    "ComponentRecord",
    "VaultRecord",
    "ResourceRecord",
    "Snapshot",
    "InMemorySubstateStore",
]
