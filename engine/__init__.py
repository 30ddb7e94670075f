"""
Reference in-memory ledger: packages, components, vaults, signed transactions.

Only lightweight metadata and the most common entry points are exported here;
blueprint authors import from `engine.blueprint`.
"""

from .version import __version__, git_describe
from .executor import TransactionExecutor
from .receipt import Receipt, TxStatus
from .transaction import TransactionBuilder

__all__ = ["__version__", "git_describe", "TransactionExecutor", "Receipt", "TxStatus", "TransactionBuilder"]
