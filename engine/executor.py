"""
engine.executor: validate, execute and commit transactions.

Responsibilities
- Key and account provisioning (`new_key_pair`, `new_account`): deterministic
  Ed25519 keys from the configured seed, and an account component funded with
  the faucet amount of the native token.
- Package publishing (`publish_package`): static validation, then the code is
  stored under a fresh package address.
- `validate_and_execute(signed)`: signature + nonce validation (raising
  `ValidationError` subclasses), then all-or-nothing execution of the
  instruction list producing a `Receipt`.
- Read paths used by test harnesses: `read_component_state`, `read_vault`,
  `query_method` and `account_balance`.

Execution model
- A snapshot of the store is taken before the first instruction. Any
  `ExecError` (or an unexpected exception raised by blueprint code, wrapped as
  a `Revert`) restores it and yields a FAILURE receipt.
- The nonce is consumed at validation time, outside the snapshot, so a failed
  transaction still cannot be replayed.
- Buckets returned by an instruction go to the worktop; proofs go to the auth
  zone. A transaction that ends with non-empty buckets fails with
  `ResourceLeak`.
"""

from __future__ import annotations

import hashlib
import logging
from decimal import Decimal
from typing import Any, List, Optional, Tuple

from .account import Account
from .addresses import PACKAGE, Address, derive_address
from .codec import encode_value
from .config import EngineConfig, get_config
from .crypto import KeyPair, verify
from .errors import ExecError, InvalidAccess, InvalidSignature, NotFound, Revert, error_to_receipt_fields
from .package import PackageCache, builtin_package, load_package
from .receipt import Receipt, TxStatus
from .runtime import TransactionContext, activate
from .state.store import InMemorySubstateStore
from .transaction import SignedTransaction

log = logging.getLogger(__name__)

SYSTEM_PACKAGE = derive_address(PACKAGE, b"system", 0)


class TransactionExecutor:
    """
    Single-writer executor over an in-memory substate store.

    Example:
        ex = TransactionExecutor()
        key = ex.new_key_pair()
        account = ex.new_account(key.public_key)
    """

    def __init__(self, store: Optional[InMemorySubstateStore] = None, *, config: Optional[EngineConfig] = None):
        self.config = config or get_config()
        self.store = store if store is not None else InMemorySubstateStore.with_bootstrap()
        self.packages = PackageCache(max_bytes=self.config.max_code_bytes, strict=self.config.strict_packages)
        self._key_counter = 0
        self._system_seq = 0
        self._package_seq = 0
        self._install_system_package()
        log.debug("executor ready: %s", self.config.to_dict())

    def _install_system_package(self) -> None:
        if SYSTEM_PACKAGE not in self.store.packages:
            self.store.put_package(SYSTEM_PACKAGE, b"", builtin=True)
        self.packages.add(builtin_package(SYSTEM_PACKAGE, {"Account": Account}))

    @property
    def network(self) -> str:
        """Network id transactions must be built for."""
        return self.config.network

    @property
    def native_token(self) -> Address:
        token = self.store.native_token
        if token is None:
            raise NotFound("store has no native token", kind="resource", key="native")
        return token

    # ------------------------------------------------------------------ keys

    def new_key_pair(self) -> KeyPair:
        self._key_counter += 1
        return KeyPair.derive(self.config.key_seed, self._key_counter)

    def _system_domain(self, label: bytes) -> bytes:
        self._system_seq += 1
        return b"system/" + label + b"/" + self._system_seq.to_bytes(8, "big")

    def new_account(self, public_key: str) -> Address:
        """Create an account owned by `public_key`, funded from the faucet."""
        ctx = TransactionContext(
            self.store, self.packages, domain=self._system_domain(b"account"), system=True
        )
        snap = self.store.snapshot()
        try:
            with activate(ctx):
                bucket = ctx.mint_native(self.config.faucet_amount) if self.config.faucet_amount > 0 else None
                address = ctx.call_function(SYSTEM_PACKAGE, "Account", "new", [public_key, bucket])
                ctx.finalize()
        except ExecError:
            self.store.restore(snap)
            raise
        log.debug("new account %s for %s…", address, public_key[:16])
        return address

    # -------------------------------------------------------------- packages

    def publish_package(self, code: bytes) -> Address:
        """
        Validate and store package `code`.

        Raises:
            PackageValidationError if the code fails static validation or
            cannot be loaded.
        """
        self._package_seq += 1
        domain = hashlib.sha3_256(bytes(code)).digest() + self._package_seq.to_bytes(8, "big")
        address = derive_address(PACKAGE, domain, self._package_seq)
        pkg = load_package(
            address, bytes(code), max_bytes=self.config.max_code_bytes, strict=self.config.strict_packages
        )
        self.store.put_package(address, code)
        self.packages.add(pkg)
        log.info("published package %s blueprints=%s", address, sorted(pkg.blueprints))
        return address

    # ---------------------------------------------------------------- nonces

    def next_nonce(self, public_key: str) -> int:
        return self.store.next_nonce(public_key)

    # ------------------------------------------------------------- execution

    def _validate(self, signed: SignedTransaction) -> None:
        tx = signed.transaction
        if tx.network != self.config.network:
            raise InvalidSignature(f"transaction is for network {tx.network!r}", network=tx.network)
        if not signed.signatures:
            raise InvalidSignature("transaction carries no signatures")
        if tx.signer not in signed.signer_keys:
            raise InvalidSignature("transaction is not signed by its declared signer", signer=tx.signer)
        payload = tx.payload()
        for public_key, signature in signed.signatures:
            if not verify(public_key, payload, signature):
                raise InvalidSignature(f"bad signature from {public_key[:16]}…", public_key=public_key)
        self.store.consume_nonce(tx.signer, tx.nonce)

    def validate_and_execute(self, signed: SignedTransaction) -> Receipt:
        """
        Validate `signed` and execute it atomically.

        Raises:
            InvalidSignature / InvalidNonce when validation fails; no receipt
            is produced in that case.
        """
        self._validate(signed)
        tx = signed.transaction
        tx_hash = tx.hash()
        ctx = TransactionContext(
            self.store,
            self.packages,
            domain=bytes.fromhex(tx_hash[2:]),
            signers=signed.signer_keys,
        )
        outputs: List[bytes] = []
        snap = self.store.snapshot()
        error: Optional[ExecError] = None
        try:
            with activate(ctx):
                for index, instruction in enumerate(tx.instructions):
                    result = instruction.execute(ctx)
                    ctx.collect_returns(result)
                    outputs.append(encode_value(result))
                    log.debug("tx %s instruction %d %s ok", tx_hash[:10], index, instruction.op)
                ctx.finalize()
        except ExecError as e:
            error = e
        except Exception as e:  # blueprint code raising arbitrary exceptions
            error = Revert(f"{type(e).__name__}: {e}", reason="panic")

        common = dict(
            transaction_hash=tx_hash,
            nonce=tx.nonce,
            signers=tuple(signed.signer_keys),
            logs=tuple(ctx.logs),
        )
        if error is not None:
            self.store.restore(snap)
            log.info("tx %s failed: %s", tx_hash[:10], error)
            fields = error_to_receipt_fields(error)
            return Receipt(status=TxStatus.from_str(fields["status"]), error=fields["error"], **common)

        log.info(
            "tx %s committed components=%d resources=%d",
            tx_hash[:10],
            len(ctx.new_components),
            len(ctx.new_resources),
        )
        return Receipt(
            status=TxStatus.SUCCESS,
            outputs=tuple(outputs),
            new_component_addresses=tuple(ctx.new_components),
            new_resource_addresses=tuple(ctx.new_resources),
            **common,
        )

    # ---------------------------------------------------------------- reads

    def read_component_state(self, address: str) -> bytes:
        """Encoded state blob of the component or account at `address`."""
        return self.store.get_component(address).state

    def read_vault(self, vault_id: str) -> Tuple[Address, Decimal]:
        rec = self.store.get_vault(vault_id)
        return rec.resource, rec.amount

    def query_method(self, address: str, method: str, *args: Any) -> Any:
        """
        Call `method` on a component without committing anything.

        Runs as the system (access rules bypassed); all state changes,
        including the ones that would normally persist, are discarded.
        """
        ctx = TransactionContext(
            self.store, self.packages, domain=self._system_domain(b"query"), system=True
        )
        snap = self.store.snapshot()
        try:
            with activate(ctx):
                result = ctx.call_method(Address(address), method, list(args))
                if ctx.buckets and any(not b.is_empty() for b in ctx.buckets.values()):
                    raise InvalidAccess("query methods may not move resources", op=method)
                return result
        finally:
            self.store.restore(snap)

    def account_balance(self, account: str, resource: str) -> Decimal:
        """Balance of `resource` held by the account at `account`."""
        return self.query_method(account, "balance", Address(resource))


__all__ = ["SYSTEM_PACKAGE", "TransactionExecutor"]
