"""
testkit.interfaces: what the harness needs from a ledger.

The harness talks to its ledger only through these narrow protocols, so the
registries, facade and walker can be exercised against the in-repo reference
engine (`engine.TransactionExecutor`) or any other implementation with the
same shape.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Protocol, Tuple, runtime_checkable


@runtime_checkable
class LedgerReader(Protocol):
    """Read-only access used by the state walker."""

    def read_component_state(self, address: str) -> bytes:
        """Encoded (CBOR) state blob of a component or account."""

    def read_vault(self, vault_id: str) -> Tuple[str, Decimal]:
        """(resource address, amount) held by a vault."""


@runtime_checkable
class LedgerExecutor(LedgerReader, Protocol):
    """Everything the transaction facade delegates to."""

    @property
    def network(self) -> str:
        """Network id transactions must be built for."""

    def new_key_pair(self) -> Any:
        """A fresh key pair exposing `public_key` (hex) and `private_key`."""

    def new_account(self, public_key: str) -> str:
        """Create an account owned by `public_key`; returns its address."""

    def publish_package(self, code: bytes) -> str:
        """Publish package code; returns the package address."""

    def next_nonce(self, public_key: str) -> int:
        """Nonce the next transaction from `public_key` must carry."""

    def validate_and_execute(self, signed: Any) -> Any:
        """Validate and execute a signed transaction; returns its Receipt."""

    def account_balance(self, account: str, resource: str) -> Decimal:
        """Balance of `resource` held by a standard account."""


__all__ = ["LedgerReader", "LedgerExecutor"]
