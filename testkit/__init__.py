"""
Ledger testkit: a transaction test harness for the reference ledger.

    from testkit import TestEnv

    env = TestEnv()
    alice = env.create_user("alice")
    token = env.create_token("10000")
    assert env.get_balance(alice.account, token) == 10000
"""

from .version import __version__
from .config import HarnessConfig, SelectionPolicy, load_config
from .env import TestEnv
from .errors import (
    DuplicateNameError,
    HarnessError,
    NoCurrentPackageError,
    NoCurrentUserError,
    NotFoundError,
    TransactionFailedError,
)
from .registry import User
from .walker import StateWalker, VaultSnapshot

__all__ = [
    "__version__",
    "TestEnv",
    "User",
    "HarnessConfig",
    "SelectionPolicy",
    "load_config",
    "StateWalker",
    "VaultSnapshot",
    "HarnessError",
    "NotFoundError",
    "DuplicateNameError",
    "NoCurrentUserError",
    "NoCurrentPackageError",
    "TransactionFailedError",
]
