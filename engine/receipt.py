"""
engine.receipt: the outcome of executing one transaction.

TxStatus models the logical outcome:
  - SUCCESS : every instruction ran and the transaction committed
  - FAILURE : an execution error rolled the transaction back

String forms:
  - str(TxStatus.SUCCESS) -> "success"   (good for logs)
  - TxStatus.SUCCESS.code  -> "SUCCESS"  (good for receipts/protocols)

A `Receipt` is frozen; callers own it once returned. Instruction outputs are
kept as the raw encoded blobs produced by the engine (`outputs`), with
`output(i)` as a decoding convenience.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .addresses import Address
from .codec import decode_value


class TxStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"

    @property
    def code(self) -> str:
        return self.value.upper()

    @property
    def is_success(self) -> bool:
        return self is TxStatus.SUCCESS

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.value

    @classmethod
    def from_str(cls, s: str, *, default: Optional["TxStatus"] = None) -> "TxStatus":
        """
        Parse a status from a string (case-insensitive).

        Accepted values:
          - success: "success", "ok", "s", "passed", "committed"
          - failure: "failure", "failed", "fail", "revert", "rejected"
        """
        norm = (s or "").strip().lower()
        if norm in {"success", "ok", "s", "passed", "committed"}:
            return cls.SUCCESS
        if norm in {"failure", "failed", "fail", "revert", "rejected"}:
            return cls.FAILURE
        if default is not None:
            return default
        raise ValueError(f"unknown TxStatus: {s!r}")


class ReceiptError(AssertionError):
    """Raised by `Receipt.expect_success` / `expect_failure`."""


@dataclass(frozen=True)
class Receipt:
    status: TxStatus
    transaction_hash: str
    nonce: int
    signers: Tuple[str, ...] = ()
    outputs: Tuple[bytes, ...] = ()
    new_component_addresses: Tuple[Address, ...] = ()
    new_resource_addresses: Tuple[Address, ...] = ()
    logs: Tuple[Tuple[str, str], ...] = ()
    error: Optional[Dict[str, Any]] = field(default=None)

    @property
    def is_success(self) -> bool:
        return self.status.is_success

    @property
    def error_code(self) -> Optional[str]:
        return None if self.error is None else self.error.get("code")

    def output(self, index: int) -> Any:
        """Decode the output of instruction `index`."""
        return decode_value(self.outputs[index])

    def component(self, index: int = 0) -> Optional[Address]:
        try:
            return self.new_component_addresses[index]
        except IndexError:
            return None

    def resource(self, index: int = 0) -> Optional[Address]:
        try:
            return self.new_resource_addresses[index]
        except IndexError:
            return None

    def expect_success(self) -> "Receipt":
        if not self.is_success:
            raise ReceiptError(f"transaction {self.transaction_hash} failed: {self.error}")
        return self

    def expect_failure(self, code: Optional[str] = None) -> "Receipt":
        if self.is_success:
            raise ReceiptError(f"transaction {self.transaction_hash} unexpectedly succeeded")
        if code is not None and self.error_code != code:
            raise ReceiptError(f"expected failure {code}, got {self.error_code}")
        return self

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "status": self.status.value,
            "transactionHash": self.transaction_hash,
            "nonce": self.nonce,
            "signers": list(self.signers),
            "outputs": ["0x" + o.hex() for o in self.outputs],
            "newComponents": [str(a) for a in self.new_component_addresses],
            "newResources": [str(a) for a in self.new_resource_addresses],
            "logs": [list(line) for line in self.logs],
        }
        if self.error is not None:
            out["error"] = self.error
        return out


__all__ = ["TxStatus", "Receipt", "ReceiptError"]
