"""
testkit.walker: resolve balances from opaque component state.

The ledger exposes component state only as an encoded blob, so balances of an
arbitrary component are found by walking that blob for vault references and
asking the ledger what each vault holds:

    state = reader.read_component_state(address)     # CBOR bytes
    refs  = collect_vaults(cbor2.loads(state))       # every vault, any depth
    (resource, amount) = reader.read_vault(ref)      # per vault

Several vaults of one component may hold the same resource. `get_vaults`
reports them all; `get_all_balances` aggregates them according to
`duplicate_vaults`:

    "last"  later vaults (in document order) overwrite earlier ones
    "sum"   amounts are added up

`get_balance` reports the first vault of the resource in document order, or
the total in "sum" mode.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List

import cbor2

from engine import numeric
from engine.addresses import Address

from .interfaces import LedgerReader
from .values import DEFAULT_SCHEMA, TagSchema, collect_vaults

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class VaultSnapshot:
    """Point-in-time read of one vault."""

    vault_id: str
    resource_address: Address
    amount: Decimal


class StateWalker:
    def __init__(
        self,
        reader: LedgerReader,
        *,
        duplicate_vaults: str = "last",
        schema: TagSchema = DEFAULT_SCHEMA,
    ) -> None:
        if duplicate_vaults not in ("last", "sum"):
            raise ValueError(f"duplicate_vaults must be 'last' or 'sum', got {duplicate_vaults!r}")
        self.reader = reader
        self.duplicate_vaults = duplicate_vaults
        self.schema = schema

    def vault_refs(self, address: str) -> List[str]:
        raw = cbor2.loads(self.reader.read_component_state(address))
        return collect_vaults(raw, schema=self.schema)

    def get_vaults(self, address: str) -> List[VaultSnapshot]:
        out: List[VaultSnapshot] = []
        for ref in self.vault_refs(address):
            resource, amount = self.reader.read_vault(ref)
            out.append(VaultSnapshot(ref, Address(resource), amount))
        log.debug("walked %s: %d vault(s)", address, len(out))
        return out

    def get_all_balances(self, address: str) -> Dict[Address, Decimal]:
        balances: Dict[Address, Decimal] = {}
        for snap in self.get_vaults(address):
            if self.duplicate_vaults == "sum" and snap.resource_address in balances:
                balances[snap.resource_address] = numeric.add(balances[snap.resource_address], snap.amount)
            else:
                balances[snap.resource_address] = snap.amount
        return balances

    def get_balance(self, address: str, resource: str) -> Decimal:
        """
        Balance of `resource` reachable from `address`; zero when no vault holds it.

        With several vaults of `resource` the first one in document order is
        reported, unless the walker is in "sum" mode.
        """
        resource = Address(resource)
        if self.duplicate_vaults == "sum":
            return self.get_all_balances(address).get(resource, Decimal(0))
        for snap in self.get_vaults(address):
            if snap.resource_address == resource:
                return snap.amount
        return Decimal(0)


__all__ = ["VaultSnapshot", "StateWalker"]
