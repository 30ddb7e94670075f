"""
engine.runtime: per-transaction execution context.

A `TransactionContext` carries everything one transaction needs while its
instructions run:

- the substate store and package cache,
- the auth zone (signer keys + proofs) consulted by access rules,
- the worktop (buckets returned by calls, awaiting deposit),
- every bucket minted or split during the transaction (for leak detection),
- live component instances, flushed back to encoded state at the end,
- newly created addresses and blueprint log lines for the receipt.

Blueprint code reaches the active context through `current()`; the executor
installs it with `activate(ctx)`. Contexts nest only for read-only queries.
"""

from __future__ import annotations

import contextlib
import hashlib
import inspect
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional, Sequence, Set, Tuple

from . import numeric
from .addresses import ACCOUNT, COMPONENT, HRP, RESOURCE, Address, derive_address
from .blueprint import AccessRules, Blueprint, Bucket, Proof, Rule, Vault
from .codec import (
    TAG_BUCKET,
    TAG_PROOF,
    TAG_STRUCT,
    TAG_VAULT,
    decode_value,
    encode_state,
)
from .errors import (
    AuthorizationError,
    InsufficientBalance,
    InvalidAccess,
    InvalidAmount,
    NotFound,
    ResourceLeak,
)
from .package import LoadedPackage, PackageCache
from .state.store import ComponentRecord, InMemorySubstateStore, ResourceRecord, VaultRecord

log = logging.getLogger(__name__)

_ACTIVE: List["TransactionContext"] = []


def current() -> "TransactionContext":
    """The innermost active transaction context."""
    if not _ACTIVE:
        raise InvalidAccess("no active transaction", op="context")
    return _ACTIVE[-1]


@contextlib.contextmanager
def activate(ctx: "TransactionContext") -> Iterator["TransactionContext"]:
    _ACTIVE.append(ctx)
    try:
        yield ctx
    finally:
        _ACTIVE.pop()


# ------------------------------------------------------------------------------
# Auth zone
# ------------------------------------------------------------------------------


@dataclass
class AuthZone:
    signers: Set[str] = field(default_factory=set)
    proofs: List[Proof] = field(default_factory=list)
    system: bool = False

    def satisfies(self, rule: Rule) -> bool:
        if self.system or rule.kind == "allow_all":
            return True
        if rule.kind == "deny_all":
            return False
        if rule.kind == "require_signature":
            return rule.public_key in self.signers
        if rule.kind == "require":
            return any(
                p.resource_address == rule.resource and p.amount > 0 and p.amount >= rule.amount
                for p in self.proofs
            )
        return False


# ------------------------------------------------------------------------------
# Context
# ------------------------------------------------------------------------------


def _is_function(cls: type, name: str) -> bool:
    attr = inspect.getattr_static(cls, name)
    return isinstance(attr, (classmethod, staticmethod))


class TransactionContext:
    def __init__(
        self,
        store: InMemorySubstateStore,
        packages: PackageCache,
        *,
        domain: bytes,
        signers: Sequence[str] = (),
        system: bool = False,
    ):
        self.store = store
        self.packages = packages
        self.domain = bytes(domain)
        self.auth = AuthZone(signers=set(signers), system=system)
        self.worktop: List[Bucket] = []
        self.named_buckets: Dict[int, Bucket] = {}
        self.buckets: Dict[int, Bucket] = {}
        self.live: Dict[Address, Blueprint] = {}
        self.call_stack: List[Address] = []
        self.new_components: List[Address] = []
        self.new_resources: List[Address] = []
        self.logs: List[Tuple[str, str]] = []
        self._seq = 0
        self._bucket_seq = 0

    # ---------------------------- identifiers ------------------------------

    def _next_seq(self) -> int:
        self._seq += 1
        return self._seq

    def new_address(self, kind: str) -> Address:
        return derive_address(kind, self.domain, self._next_seq())

    # ----------------------------- resources -------------------------------

    def mint_fungible(self, supply: Decimal, divisibility: int, metadata: Dict[str, str]) -> Bucket:
        if supply < 0:
            raise InvalidAmount("initial supply must be non-negative", amount=str(supply))
        if not numeric.fits_divisibility(supply, divisibility):
            raise InvalidAmount(f"initial supply exceeds divisibility {divisibility}", amount=str(supply))
        addr = self.new_address(RESOURCE)
        self.store.resources[addr] = ResourceRecord(
            address=addr, divisibility=divisibility, metadata=dict(metadata), total_supply=supply
        )
        self.new_resources.append(addr)
        return self.new_bucket(addr, supply)

    def mint_native(self, amount: Decimal) -> Bucket:
        """System-only: mint native tokens (account faucet)."""
        if not self.auth.system:
            raise InvalidAccess("only the system may mint the native token", op="mint")
        token = self.store.native_token
        if token is None:
            raise NotFound("store has no native token", kind="resource", key="native")
        rec = self.store.get_resource(token)
        rec.total_supply = numeric.add(rec.total_supply, amount)
        return self.new_bucket(token, amount)

    def new_bucket(self, resource: Address, amount: Decimal) -> Bucket:
        self._bucket_seq += 1
        bucket = Bucket(self._bucket_seq, resource, amount)
        self.buckets[bucket.bucket_id] = bucket
        return bucket

    def new_vault(self, resource: Address) -> str:
        self.store.get_resource(resource)
        h = hashlib.sha3_256(b"vault\x00" + self.domain + self._next_seq().to_bytes(8, "big"))
        vault_id = f"vault_{HRP}1{h.hexdigest()[:40]}"
        self.store.vaults[vault_id] = VaultRecord(vault_id=vault_id, resource=resource)
        return vault_id

    # ----------------------------- components ------------------------------

    def globalize(self, instance: Blueprint, rules: AccessRules) -> Address:
        if instance.address is not None:
            raise InvalidAccess("component is already globalized", address=str(instance.address))
        package = getattr(type(instance), "__ledger_package__", None)
        if package is None:
            raise InvalidAccess(f"{type(instance).__name__} is not a published blueprint", op="globalize")
        kind = ACCOUNT if type(instance).__ledger_address_kind__ == ACCOUNT else COMPONENT
        addr = self.new_address(kind)
        instance.__dict__["_address"] = addr
        self.store.components[addr] = ComponentRecord(
            address=addr,
            package=package,
            blueprint=type(instance).__name__,
            state=encode_state(instance),
            access_rules=rules,
        )
        self.live[addr] = instance
        self.new_components.append(addr)
        return addr

    def load_package(self, address: Address) -> LoadedPackage:
        rec = self.store.get_package(address)
        return self.packages.get(address, None if rec.builtin else rec.code)

    def state_hooks(self, pkg: LoadedPackage) -> Dict[int, Any]:
        def struct(value: Any) -> Any:
            name, fields = value
            cls = pkg.structs.get(name)
            if cls is None:
                raise NotFound(f"unknown struct {name!r}", kind="struct", key=str(name))
            obj = cls.__new__(cls)
            obj.__dict__.update(fields)
            return obj

        return {TAG_STRUCT: struct, TAG_VAULT: lambda v: Vault(str(v))}

    def load_component(self, address: Address) -> Blueprint:
        inst = self.live.get(address)
        if inst is not None:
            return inst
        rec = self.store.get_component(address)
        pkg = self.load_package(rec.package)
        inst = decode_value(rec.state, hooks=self.state_hooks(pkg))
        inst.__dict__["_address"] = rec.address
        self.live[rec.address] = inst
        return inst

    def decode_args(self, raw_args: Sequence[bytes], pkg: Optional[LoadedPackage] = None) -> List[Any]:
        """Decode instruction arguments, claiming named buckets they reference."""
        hooks: Dict[int, Any] = {
            TAG_BUCKET: self._claim_named_bucket,
            TAG_PROOF: lambda v: Proof(Address(v[0]), numeric.to_decimal(v[1])),
            TAG_VAULT: self._reject_vault_arg,
        }
        if pkg is not None:
            hooks[TAG_STRUCT] = self.state_hooks(pkg)[TAG_STRUCT]
        return [decode_value(a, hooks=hooks) for a in raw_args]

    def _claim_named_bucket(self, bucket_id: Any) -> Bucket:
        bucket = self.named_buckets.pop(int(bucket_id), None)
        if bucket is None:
            raise NotFound(f"no bucket #{bucket_id} taken from the worktop", kind="bucket", key=str(bucket_id))
        return bucket

    def _reject_vault_arg(self, value: Any) -> Any:
        raise InvalidAccess("vaults cannot be passed as arguments", op="decode", data={"vault": str(value)})

    # ------------------------------- calls ---------------------------------

    def call_function(self, package: Address, blueprint: str, function: str, args: List[Any]) -> Any:
        pkg = self.load_package(package)
        cls = pkg.blueprint(blueprint)
        if function.startswith("_") or not hasattr(cls, function) or not _is_function(cls, function):
            raise NotFound(f"no function {blueprint}::{function}", kind="function", key=function)
        log.debug("call_function %s::%s", blueprint, function)
        return getattr(cls, function)(*args)

    def call_method(self, address: Address, method: str, args: List[Any]) -> Any:
        rec = self.store.get_component(address)
        inst = self.load_component(rec.address)
        cls = type(inst)
        if method.startswith("_") or not hasattr(cls, method) or _is_function(cls, method):
            raise NotFound(f"no method {rec.blueprint}::{method}", kind="method", key=method)
        rules = rec.access_rules or AccessRules()
        rule = rules.rule_for(method)
        if not self.auth.satisfies(rule):
            raise AuthorizationError(
                f"{rec.blueprint}::{method} requires {rule.describe()}",
                component=str(address),
                method=method,
                rule=rule.describe(),
            )
        if rec.address in self.call_stack:
            raise InvalidAccess("reentrant call", address=str(address), op=method)
        self.call_stack.append(rec.address)
        try:
            log.debug("call_method %s::%s on %s", rec.blueprint, method, address)
            return getattr(inst, method)(*args)
        finally:
            self.call_stack.pop()

    # ------------------------------ worktop --------------------------------

    def collect_returns(self, value: Any) -> None:
        """Move buckets returned by a call to the worktop and proofs to the auth zone."""
        if isinstance(value, Bucket):
            self.worktop.append(value)
        elif isinstance(value, Proof):
            self.auth.proofs.append(value)
        elif isinstance(value, (list, tuple)):
            for v in value:
                self.collect_returns(v)
        elif isinstance(value, dict):
            for v in value.values():
                self.collect_returns(v)

    def take_from_worktop(self, resource: Address, amount: Optional[Decimal], bucket_id: int) -> Bucket:
        """Gather `amount` (or everything) of `resource` into a named bucket."""
        matching = [b for b in self.worktop if b.resource_address == resource and not b.is_empty()]
        available = Decimal(0)
        for b in matching:
            available = numeric.add(available, b.amount())
        wanted = available if amount is None else amount
        if wanted > available:
            raise InsufficientBalance(
                "not enough on the worktop", resource=str(resource), requested=str(wanted), available=str(available)
            )
        out = self.new_bucket(resource, Decimal(0))
        remaining = wanted
        for b in matching:
            if remaining == 0:
                break
            part = b if b.amount() <= remaining else b.take(remaining)
            remaining = numeric.sub(remaining, part.amount())
            out.put(part)
        self.worktop = [b for b in self.worktop if not b.is_empty()]
        self.named_buckets[bucket_id] = out
        return out

    def drain_worktop(self) -> List[Bucket]:
        buckets = [b for b in self.worktop if not b.is_empty()]
        self.worktop = []
        return buckets

    # ------------------------------ logging --------------------------------

    def log(self, level: str, message: str) -> None:
        self.logs.append((level, message))
        log.debug("blueprint %s: %s", level.lower(), message)

    # ------------------------------ finalize -------------------------------

    def flush(self) -> None:
        """Write live component instances back to the store."""
        for addr, inst in self.live.items():
            self.store.get_component(addr).state = encode_state(inst)

    def finalize(self) -> None:
        """Flush state and fail on resources that were never deposited."""
        self.flush()
        leaked = [
            {"bucket": b.bucket_id, "resource": str(b.resource_address), "amount": str(b.amount())}
            for b in self.buckets.values()
            if not b.is_empty()
        ]
        if leaked:
            raise ResourceLeak(f"{len(leaked)} bucket(s) not deposited", buckets=leaked)


__all__ = ["AuthZone", "TransactionContext", "current", "activate"]
