"""In-memory ledger state (records, store, snapshots)."""

from .store import (
    ComponentRecord,
    InMemorySubstateStore,
    PackageRecord,
    ResourceRecord,
    Snapshot,
    VaultRecord,
)

__all__ = [
    "ComponentRecord",
    "InMemorySubstateStore",
    "PackageRecord",
    "ResourceRecord",
    "Snapshot",
    "VaultRecord",
]
