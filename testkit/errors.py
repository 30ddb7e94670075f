"""
testkit.errors: harness usage errors.

These signal a mistake by the test author (unknown name, nothing selected),
never a failure of the ledger under test; ledger failures are reported inside
the Receipt. Every error fails fast and carries a stable `code`.

HarnessError (base)
 ├─ NotFoundError           : unknown user or package name
 ├─ DuplicateNameError      : name already registered (when configured to refuse)
 ├─ NoCurrentUserError      : facade used before any user exists / is selected
 ├─ NoCurrentPackageError   : function call without a package selected
 └─ TransactionFailedError  : an operation that must return a value got a failed Receipt
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class HarnessError(Exception):
    code = "HARNESS_ERROR"

    def __init__(self, message: str, **data: Any):
        super().__init__(message)
        self.message = message
        self.data: Dict[str, Any] = {k: v for k, v in data.items() if v is not None}

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data:
            out["data"] = self.data
        return out


class NotFoundError(HarnessError, LookupError):
    code = "NOT_FOUND"

    def __init__(self, kind: str, name: str):
        super().__init__(f"no {kind} registered under {name!r}", kind=kind, name=name)
        self.kind = kind
        self.name = name


class DuplicateNameError(HarnessError):
    code = "DUPLICATE_NAME"

    def __init__(self, kind: str, name: str):
        super().__init__(f"{kind} {name!r} is already registered", kind=kind, name=name)
        self.kind = kind
        self.name = name


class NoCurrentUserError(HarnessError):
    code = "NO_CURRENT_USER"

    def __init__(self, message: str = "no current user; call create_user() or acting_as() first"):
        super().__init__(message)


class NoCurrentPackageError(HarnessError):
    code = "NO_CURRENT_PACKAGE"

    def __init__(self, message: str = "no current package; call publish_package() or using_package() first"):
        super().__init__(message)


class TransactionFailedError(HarnessError):
    """Raised only where a facade operation must return a value (create_token)."""

    code = "TRANSACTION_FAILED"

    def __init__(self, operation: str, receipt: Any):
        error: Optional[Dict[str, Any]] = getattr(receipt, "error", None)
        super().__init__(f"{operation} failed: {error}", operation=operation, error=error)
        self.receipt = receipt


__all__ = [
    "HarnessError",
    "NotFoundError",
    "DuplicateNameError",
    "NoCurrentUserError",
    "NoCurrentPackageError",
    "TransactionFailedError",
]
