"""
engine.blueprint: the API available to package code.

Packages are Python source defining `Blueprint` subclasses. Inside a blueprint:

    from engine.blueprint import (
        AccessRules, Blueprint, ResourceBuilder, Vault, allow_all, require,
    )

    class Hello(Blueprint):
        def __init__(self, admin_badge):
            self.admin_badge = admin_badge
            self.state = 0

        @classmethod
        def instantiate(cls):
            badge = ResourceBuilder.new_fungible().divisibility(0).initial_supply(1)
            rules = AccessRules().method("reset", require(badge.resource_address))
            return cls(badge.resource_address).globalize(rules), badge

        def reset(self):
            self.state = 0

Conventions
-----------
* `@classmethod` / `@staticmethod` members are *functions* (called on the
  blueprint); plain methods are *methods* (called on a component).
* Names starting with ``_`` are not callable from transactions and
  attributes starting with ``_`` are not persisted.
* Buckets must end up in a vault, be returned to the caller, or be passed on;
  anything left over fails the transaction.

All handles resolve the active transaction lazily, so this module can be
imported freely (including by the executor) without an active transaction.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

from cbor2 import CBORTag

from . import numeric
from .addresses import Address
from .codec import TAG_BUCKET, TAG_PROOF, TAG_VAULT
from .errors import InsufficientBalance, InvalidAccess, InvalidAmount, Revert

if TYPE_CHECKING:
    from .runtime import TransactionContext

DIVISIBILITY_NONE = 0
DIVISIBILITY_MAXIMUM = numeric.DECIMAL_PLACES


def _ctx() -> "TransactionContext":
    from .runtime import current

    return current()


# ------------------------------------------------------------------------------
# Access rules
# ------------------------------------------------------------------------------


@dataclass(frozen=True)
class Rule:
    """
    A single access rule.

    kind is one of: "allow_all", "deny_all", "require" (proof of resource with
    amount ≥ `amount`), "require_signature" (signer public key).
    """
    kind: str
    resource: Optional[Address] = None
    amount: Decimal = Decimal(0)
    public_key: Optional[str] = None

    def describe(self) -> str:
        if self.kind == "require":
            if self.amount > 0:
                return f"require({self.amount} of {self.resource})"
            return f"require({self.resource})"
        if self.kind == "require_signature":
            return f"require_signature({(self.public_key or '')[:16]}…)"
        return self.kind


def allow_all() -> Rule:
    return Rule("allow_all")


def deny_all() -> Rule:
    return Rule("deny_all")


def require(resource: Address) -> Rule:
    """Require a proof of any non-zero amount of `resource`."""
    return Rule("require", resource=Address(resource))


def require_amount(amount: numeric.DecimalLike, resource: Address) -> Rule:
    return Rule("require", resource=Address(resource), amount=numeric.to_decimal(amount))


def require_signature(public_key: str) -> Rule:
    return Rule("require_signature", public_key=str(public_key))


class AccessRules:
    """Per-method rules with a default for unlisted methods (allow_all)."""

    def __init__(self) -> None:
        self.methods: Dict[str, Rule] = {}
        self.default_rule: Rule = allow_all()

    def method(self, name: str, rule: Rule) -> "AccessRules":
        self.methods[name] = rule
        return self

    def default(self, rule: Rule) -> "AccessRules":
        self.default_rule = rule
        return self

    def rule_for(self, name: str) -> Rule:
        return self.methods.get(name, self.default_rule)


# ------------------------------------------------------------------------------
# Proofs, buckets, vaults
# ------------------------------------------------------------------------------


@dataclass(frozen=True)
class Proof:
    """Evidence that the transaction controls `amount` of `resource_address`."""
    resource_address: Address
    amount: Decimal

    def __ledger_tag__(self) -> CBORTag:
        return CBORTag(TAG_PROOF, [str(self.resource_address), self.amount])


class Bucket:
    """A transient container of one resource, alive for one transaction."""

    def __init__(self, bucket_id: int, resource_address: Address, amount: Decimal):
        self.bucket_id = bucket_id
        self.resource_address = resource_address
        self._amount = amount

    def amount(self) -> Decimal:
        return self._amount

    def is_empty(self) -> bool:
        return self._amount == 0

    def take(self, amount: numeric.DecimalLike) -> "Bucket":
        amt = _positive(amount)
        _check_divisibility(self.resource_address, amt)
        if amt > self._amount:
            raise InsufficientBalance(
                resource=str(self.resource_address), requested=str(amt), available=str(self._amount)
            )
        self._amount = numeric.sub(self._amount, amt)
        return _ctx().new_bucket(self.resource_address, amt)

    def put(self, other: "Bucket") -> None:
        _same_resource(self.resource_address, other.resource_address)
        self._amount = numeric.add(self._amount, other._drain())

    def create_proof(self) -> Proof:
        if self.is_empty():
            raise Revert("cannot create a proof from an empty bucket")
        return Proof(self.resource_address, self._amount)

    def _drain(self) -> Decimal:
        amt, self._amount = self._amount, Decimal(0)
        return amt

    def __ledger_tag__(self) -> CBORTag:
        return CBORTag(TAG_BUCKET, self.bucket_id)

    def __repr__(self) -> str:
        return f"Bucket(#{self.bucket_id}, {self._amount} of {self.resource_address})"


class Vault:
    """Handle to a persistent vault; state lives in the substate store."""

    __slots__ = ("vault_id",)

    def __init__(self, vault_id: str):
        self.vault_id = vault_id

    @classmethod
    def new(cls, resource_address: Address) -> "Vault":
        return cls(_ctx().new_vault(Address(resource_address)))

    @classmethod
    def with_bucket(cls, bucket: Bucket) -> "Vault":
        vault = cls.new(bucket.resource_address)
        vault.put(bucket)
        return vault

    @property
    def resource_address(self) -> Address:
        return _ctx().store.get_vault(self.vault_id).resource

    def amount(self) -> Decimal:
        return _ctx().store.get_vault(self.vault_id).amount

    def is_empty(self) -> bool:
        return self.amount() == 0

    def put(self, bucket: Bucket) -> None:
        rec = _ctx().store.get_vault(self.vault_id)
        _same_resource(rec.resource, bucket.resource_address)
        rec.amount = numeric.add(rec.amount, bucket._drain())

    def take(self, amount: numeric.DecimalLike) -> Bucket:
        ctx = _ctx()
        rec = ctx.store.get_vault(self.vault_id)
        amt = _positive(amount)
        _check_divisibility(rec.resource, amt)
        if amt > rec.amount:
            raise InsufficientBalance(
                resource=str(rec.resource), requested=str(amt), available=str(rec.amount)
            )
        rec.amount = numeric.sub(rec.amount, amt)
        return ctx.new_bucket(rec.resource, amt)

    def take_all(self) -> Bucket:
        ctx = _ctx()
        rec = ctx.store.get_vault(self.vault_id)
        amt, rec.amount = rec.amount, Decimal(0)
        return ctx.new_bucket(rec.resource, amt)

    def create_proof(self) -> Proof:
        rec = _ctx().store.get_vault(self.vault_id)
        if rec.amount == 0:
            raise Revert("cannot create a proof from an empty vault", data={"resource": str(rec.resource)})
        return Proof(rec.resource, rec.amount)

    def __ledger_tag__(self) -> CBORTag:
        return CBORTag(TAG_VAULT, self.vault_id)

    def __repr__(self) -> str:
        return f"Vault({self.vault_id})"


def _positive(amount: numeric.DecimalLike) -> Decimal:
    amt = numeric.to_decimal(amount)
    if amt <= 0:
        raise InvalidAmount("amount must be positive", amount=str(amt))
    return amt


def _check_divisibility(resource: Address, amount: Decimal) -> None:
    divisibility = _ctx().store.get_resource(resource).divisibility
    if not numeric.fits_divisibility(amount, divisibility):
        raise InvalidAmount(
            f"amount exceeds divisibility {divisibility} of {resource}", amount=str(amount)
        )


def _same_resource(a: Address, b: Address) -> None:
    if a != b:
        raise InvalidAccess(f"resource mismatch: {b} into container of {a}", op="put")


# ------------------------------------------------------------------------------
# Resources
# ------------------------------------------------------------------------------


class ResourceBuilder:
    """Fluent builder for fixed-supply fungible resources."""

    def __init__(self) -> None:
        self._divisibility = DIVISIBILITY_MAXIMUM
        self._metadata: Dict[str, str] = {}

    @classmethod
    def new_fungible(cls) -> "ResourceBuilder":
        return cls()

    def divisibility(self, value: int) -> "ResourceBuilder":
        if not (DIVISIBILITY_NONE <= int(value) <= DIVISIBILITY_MAXIMUM):
            raise InvalidAmount(f"divisibility must be in [0, {DIVISIBILITY_MAXIMUM}]")
        self._divisibility = int(value)
        return self

    def metadata(self, key: str, value: str) -> "ResourceBuilder":
        self._metadata[str(key)] = str(value)
        return self

    def initial_supply(self, amount: numeric.DecimalLike) -> Bucket:
        return _ctx().mint_fungible(numeric.to_decimal(amount), self._divisibility, dict(self._metadata))


# ------------------------------------------------------------------------------
# Components
# ------------------------------------------------------------------------------


class Blueprint:
    """Base class for blueprint definitions in package code."""

    __ledger_address_kind__ = "component"

    def globalize(self, access_rules: Optional[AccessRules] = None) -> Address:
        """Turn this instance into a component on the ledger; returns its address."""
        return _ctx().globalize(self, access_rules or AccessRules())

    @property
    def address(self) -> Optional[Address]:
        return self.__dict__.get("_address")

    def __ledger_struct__(self) -> Tuple[str, Dict[str, Any]]:
        fields = {k: v for k, v in vars(self).items() if not k.startswith("_")}
        return type(self).__name__, fields


class ComponentRef:
    """Call methods on another component from blueprint code."""

    def __init__(self, address: Address):
        self.address = Address(address)

    def call(self, method: str, *args: Any) -> Any:
        return _ctx().call_method(self.address, method, list(args))


# ------------------------------------------------------------------------------
# Misc helpers
# ------------------------------------------------------------------------------


def require_that(condition: Any, message: str = "requirement failed") -> None:
    """Fail the transaction with a Revert unless `condition` holds."""
    if not condition:
        raise Revert(message)


def info(message: str) -> None:
    _ctx().log("INFO", str(message))


def debug(message: str) -> None:
    _ctx().log("DEBUG", str(message))


__all__ = [
    "DIVISIBILITY_NONE",
    "DIVISIBILITY_MAXIMUM",
    "Rule",
    "AccessRules",
    "allow_all",
    "deny_all",
    "require",
    "require_amount",
    "require_signature",
    "Proof",
    "Bucket",
    "Vault",
    "ResourceBuilder",
    "Blueprint",
    "ComponentRef",
    "require_that",
    "info",
    "debug",
]
