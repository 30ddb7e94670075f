"""
engine.errors: exceptions raised by the reference ledger.

Two families live here:

ExecError (base): failures *during* execution. The executor catches these,
rolls the store back and reports them inside the Receipt.
 ├─ Revert              : blueprint-triggered failure (require_that, panics)
 ├─ InsufficientBalance : vault/bucket does not hold the requested amount
 ├─ InvalidAmount       : non-positive or over-divisible amount
 ├─ AuthorizationError  : access rule not satisfied by the auth zone
 ├─ InvalidAccess       : illegal state access (buckets in state, reentrancy)
 ├─ ResourceLeak        : buckets left undeposited at the end of a transaction
 └─ NotFound            : unknown component/blueprint/function/vault

ValidationError (base): failures *before* execution. These are raised to the
caller of the executor and never produce a Receipt.
 ├─ InvalidNonce
 ├─ InvalidSignature
 └─ PackageValidationError

Both carry a stable machine `code` and a `to_dict()` for receipts and logs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class ExecError(Exception):
    """
    Base execution error.

    Attributes:
        message: Human-readable explanation.
        code:    Stable machine code string (e.g., 'REVERT', 'INSUFFICIENT_BALANCE').
        data:    Optional structured details (kept JSON-serializable).
    """
    message: str = "execution error"
    code: str = "EXEC_ERROR"
    data: Optional[Dict[str, Any]] = field(default=None)

    def __str__(self) -> str:  # pragma: no cover - trivial
        if self.data:
            return f"{self.code}: {self.message} ({self.data})"
        return f"{self.code}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-safe dict for receipts and logs."""
        out: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            out["data"] = self.data
        return out


def _merge(data: Optional[Dict[str, Any]], **extra: Any) -> Optional[Dict[str, Any]]:
    d: Dict[str, Any] = dict(data or {})
    for k, v in extra.items():
        if v is not None:
            d.setdefault(k, v)
    return d or None


class Revert(ExecError):
    """
    Blueprint-triggered failure.

    Usage:
        raise Revert("require failed", reason="insufficient collateral")
    """
    def __init__(
        self,
        message: str = "reverted",
        *,
        reason: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, code="REVERT", data=_merge(data, reason=reason))


class InsufficientBalance(ExecError):
    def __init__(
        self,
        message: str = "insufficient balance",
        *,
        resource: Optional[str] = None,
        requested: Optional[str] = None,
        available: Optional[str] = None,
    ):
        super().__init__(
            message=message,
            code="INSUFFICIENT_BALANCE",
            data=_merge(None, resource=resource, requested=requested, available=available),
        )


class InvalidAmount(ExecError):
    def __init__(self, message: str = "invalid amount", *, amount: Optional[str] = None):
        super().__init__(message=message, code="INVALID_AMOUNT", data=_merge(None, amount=amount))


class AuthorizationError(ExecError):
    """Access rule for a method was not satisfied by the transaction's auth zone."""
    def __init__(
        self,
        message: str = "unauthorized",
        *,
        component: Optional[str] = None,
        method: Optional[str] = None,
        rule: Optional[str] = None,
    ):
        super().__init__(
            message=message,
            code="UNAUTHORIZED",
            data=_merge(None, component=component, method=method, rule=rule),
        )


class InvalidAccess(ExecError):
    """
    Illegal access or forbidden operation.

    Examples:
      - Bucket or proof stored in component state
      - Reentrant call into a component already on the call stack
      - Vault operation outside of an active transaction
    """
    def __init__(
        self,
        message: str = "invalid access",
        *,
        op: Optional[str] = None,
        address: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, code="INVALID_ACCESS", data=_merge(data, op=op, address=address))


class ResourceLeak(ExecError):
    """Buckets still holding resources when the transaction ended."""
    def __init__(self, message: str = "resources left on worktop", *, buckets: Optional[list] = None):
        super().__init__(message=message, code="RESOURCE_LEAK", data=_merge(None, buckets=buckets))


class NotFound(ExecError):
    def __init__(self, message: str = "not found", *, kind: Optional[str] = None, key: Optional[str] = None):
        super().__init__(message=message, code="NOT_FOUND", data=_merge(None, kind=kind, key=key))


# -------- validation (pre-execution) ----------------------------------------


class ValidationError(Exception):
    """Transaction or package rejected before execution; no receipt is produced."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, **data: Any):
        super().__init__(message)
        self.message = message
        self.data = {k: v for k, v in data.items() if v is not None}

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data:
            out["data"] = self.data
        return out


class InvalidNonce(ValidationError):
    code = "INVALID_NONCE"


class InvalidSignature(ValidationError):
    code = "INVALID_SIGNATURE"


class PackageValidationError(ValidationError):
    code = "INVALID_PACKAGE"


# -------- helper utilities ---------------------------------------------------


def error_to_receipt_fields(err: ExecError) -> Dict[str, Any]:
    """
    Map an ExecError to canonical receipt fields.

    Returns:
        {"status": "failure", "error": {code, message, data?}}
    """
    return {"status": "failure", "error": err.to_dict()}


__all__ = [
    "ExecError",
    "Revert",
    "InsufficientBalance",
    "InvalidAmount",
    "AuthorizationError",
    "InvalidAccess",
    "ResourceLeak",
    "NotFound",
    "ValidationError",
    "InvalidNonce",
    "InvalidSignature",
    "PackageValidationError",
    "error_to_receipt_fields",
]
