"""
testkit.env: the transaction test harness.

`TestEnv` owns one ledger executor for its lifetime and layers three things
on top of it:

- registries of named users and packages, each with a "current" selection,
- a facade that turns one high-level call into a signed transaction
  (instructions + trailing deposit of the worktop into the acting account,
  next nonce, Ed25519 signature) and returns the executor's Receipt as is,
- a state walker for balance assertions.

Usage
-----
    env = TestEnv()
    env.create_user("admin")
    env.create_user("user")
    env.acting_as("admin")
    env.publish_package_from_path("hello", "tests/assets/hello_world")

    receipt = env.call_function("Hello", "instantiate")
    component, badge = receipt.component(0), receipt.resource(0)
    env.call_method_auth(component, "protected_update_state", badge, [42]).expect_success()

Failure model
-------------
Usage mistakes (unknown names, nothing selected) raise `testkit.errors`
exceptions immediately. Anything that goes wrong *inside* the ledger comes
back in the Receipt; the harness never interprets or retries it.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from engine import numeric
from engine.addresses import Address
from engine.config import EngineConfig
from engine.crypto import KeyPair
from engine.executor import TransactionExecutor
from engine.receipt import Receipt
from engine.transaction import TransactionBuilder

from .config import HarnessConfig, get_config
from .errors import DuplicateNameError, TransactionFailedError
from .interfaces import LedgerExecutor
from .logging import context, log_duration
from .registry import IdentityRegistry, PackageRegistry, User
from .walker import StateWalker, VaultSnapshot

log = logging.getLogger(__name__)

BuilderFn = Callable[[TransactionBuilder, User], Any]


class TestEnv:
    __test__ = False  # not a pytest test class

    def __init__(
        self,
        executor: Optional[LedgerExecutor] = None,
        *,
        config: Optional[HarnessConfig] = None,
        engine_config: Optional[EngineConfig] = None,
    ) -> None:
        self.config = config or get_config()
        self.executor = executor if executor is not None else TransactionExecutor(config=engine_config)
        self.network = self.executor.network
        self.users = IdentityRegistry(self.config.selection_policy)
        self.packages = PackageRegistry(self.config.selection_policy)
        self.walker = StateWalker(self.executor, duplicate_vaults=self.config.duplicate_vaults)

    # ------------------------------------------------------------------ users

    def create_user(self, name: str) -> User:
        if name in self.users and self.config.on_duplicate_user == "error":
            raise DuplicateNameError("user", name)
        keys = self.executor.new_key_pair()
        account = Address(self.executor.new_account(keys.public_key))
        user = User(name=name, identity=keys.public_key, account=account, signing_key=keys.private_key)
        self.users.register(name, user)
        log.info("created user %s account=%s", name, account)
        return user

    def get_user(self, name: str) -> User:
        return self.users.get(name)

    def acting_as(self, name: str) -> "TestEnv":
        self.users.select(name)
        return self

    @property
    def current_user(self) -> Optional[User]:
        return self.users.current

    def current_user_or_fail(self) -> User:
        return self.users.current_or_fail()

    # --------------------------------------------------------------- packages

    @log_duration("publish_package")
    def publish_package(self, name: str, code: bytes) -> Address:
        """Publish `code` and register it under `name` (re-registering overwrites)."""
        address = Address(self.executor.publish_package(bytes(code)))
        self.packages.register(name, address)
        log.info("published package %s at %s", name, address)
        return address

    def publish_package_from_path(self, name: str, path: Union[str, Path]) -> Address:
        """Publish a blueprint source file, or every ``*.py`` in a directory (sorted)."""
        p = Path(path)
        if p.is_dir():
            files = sorted(f for f in p.glob("*.py") if f.is_file())
            if not files:
                raise FileNotFoundError(f"no .py sources in {p}")
            code = b"\n".join(f.read_bytes() for f in files)
        else:
            code = p.read_bytes()
        return self.publish_package(name, code)

    def get_package(self, name: str) -> Address:
        return self.packages.get(name)

    def using_package(self, name: str) -> "TestEnv":
        self.packages.select(name)
        return self

    @property
    def current_package(self) -> Optional[Address]:
        return self.packages.current

    def current_package_or_fail(self) -> Address:
        return self.packages.current_or_fail()

    # ----------------------------------------------------------------- facade

    def _submit(self, user: User, builder: TransactionBuilder) -> Receipt:
        builder.deposit_all(user.account)
        with context(user=user.name):
            nonce = self.executor.next_nonce(user.identity)
            tx = builder.build(nonce=nonce, signer=user.identity)
            signed = tx.sign(_keypair(user))
            receipt = self.executor.validate_and_execute(signed)
            log.debug("submitted %d instruction(s) nonce=%d status=%s", len(tx.instructions), nonce, receipt.status)
        return receipt

    def call_function(
        self,
        blueprint: str,
        function: str,
        args: Sequence[Any] = (),
        package: Optional[str] = None,
    ) -> Receipt:
        """
        Call `blueprint::function` in `package` (a registered name or a package
        address; default: the current package).
        """
        user = self.current_user_or_fail()
        pkg = self.packages.resolve(package)
        builder = TransactionBuilder(self.network).call_function(pkg, blueprint, function, *args)
        return self._submit(user, builder)

    def call_method(self, component: str, method: str, args: Sequence[Any] = ()) -> Receipt:
        user = self.current_user_or_fail()
        builder = TransactionBuilder(self.network).call_method(component, method, *args)
        return self._submit(user, builder)

    def call_method_auth(
        self,
        component: str,
        method: str,
        badge: str,
        args: Sequence[Any] = (),
    ) -> Receipt:
        """Like `call_method`, after proving the acting account holds `badge`."""
        user = self.current_user_or_fail()
        builder = (
            TransactionBuilder(self.network)
            .create_proof_from_account(user.account, badge)
            .call_method(component, method, *args)
        )
        return self._submit(user, builder)

    def create_token(
        self,
        max_supply: numeric.DecimalLike,
        metadata: Optional[Mapping[str, str]] = None,
        *,
        divisibility: int = numeric.DECIMAL_PLACES,
    ) -> Address:
        """
        Mint a fixed-supply token into the acting account; returns its address.

        Raises:
            TransactionFailedError when the ledger rejects the creation.
        """
        user = self.current_user_or_fail()
        builder = TransactionBuilder(self.network).new_fixed_supply_token(
            max_supply, divisibility=divisibility, metadata=dict(metadata or {})
        )
        receipt = self._submit(user, builder)
        resource = receipt.resource(0)
        if not receipt.is_success or resource is None:
            raise TransactionFailedError("create_token", receipt)
        return resource

    def transfer_resource(
        self,
        amount: numeric.DecimalLike,
        resource: str,
        recipient: Union[User, str],
    ) -> Receipt:
        """Withdraw `amount` of `resource` from the acting account into `recipient`'s."""
        user = self.current_user_or_fail()
        to = recipient if isinstance(recipient, User) else self.get_user(recipient)
        builder = TransactionBuilder(self.network).withdraw_from_account(user.account, resource, amount)
        builder.deposit_all(to.account)
        return self._submit(user, builder)

    def run(self, build: BuilderFn) -> Receipt:
        """
        Execute a custom instruction sequence as the acting user.

        `build(builder, user)` adds instructions; the usual trailing deposit
        into the acting account is appended afterwards.
        """
        user = self.current_user_or_fail()
        builder = TransactionBuilder(self.network)
        build(builder, user)
        return self._submit(user, builder)

    # ----------------------------------------------------------------- state

    def get_vaults(self, address: str) -> List[VaultSnapshot]:
        return self.walker.get_vaults(address)

    def get_all_balances(self, address: str) -> Dict[Address, Decimal]:
        return self.walker.get_all_balances(address)

    def get_balance(self, address: str, resource: str) -> Decimal:
        return self.walker.get_balance(address, resource)

    def account_balance(self, account: Union[User, str], resource: str) -> Decimal:
        """Balance via the account blueprint's own query instead of the walker."""
        address = account.account if isinstance(account, User) else account
        return self.executor.account_balance(address, resource)


def _keypair(user: User) -> KeyPair:
    return KeyPair(public_key=user.identity, private_key=user.signing_key)


__all__ = ["TestEnv"]
