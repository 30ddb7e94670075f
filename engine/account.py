"""
engine.account: the built-in account blueprint.

An account is a component owned by one public key. It keeps one vault per
resource it has ever received a non-zero deposit of. Deposits are open to
anyone; withdrawals and proofs require the owner's signature.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, List, Optional

from .addresses import ACCOUNT, Address
from .blueprint import AccessRules, Blueprint, Bucket, Proof, Vault, allow_all, require_signature
from .errors import InsufficientBalance


class Account(Blueprint):
    __ledger_address_kind__ = ACCOUNT

    def __init__(self, owner: str):
        self.owner = owner
        self.vaults: Dict[str, Vault] = {}

    @classmethod
    def new(cls, owner: str, bucket: Optional[Bucket] = None) -> Address:
        account = cls(owner)
        if bucket is not None:
            account.deposit(bucket)
        rules = (
            AccessRules()
            .method("withdraw", require_signature(owner))
            .method("create_proof", require_signature(owner))
            .default(allow_all())
        )
        return account.globalize(rules)

    def deposit(self, bucket: Bucket) -> None:
        if bucket.is_empty():
            bucket._drain()
            return
        key = str(bucket.resource_address)
        vault = self.vaults.get(key)
        if vault is None:
            vault = Vault.new(bucket.resource_address)
            self.vaults[key] = vault
        vault.put(bucket)

    def deposit_batch(self, buckets: List[Bucket]) -> None:
        for bucket in buckets:
            self.deposit(bucket)

    def withdraw(self, resource: Address, amount) -> Bucket:
        vault = self.vaults.get(str(resource))
        if vault is None:
            raise InsufficientBalance(
                f"account holds no {resource}", resource=str(resource), requested=str(amount), available="0"
            )
        return vault.take(amount)

    def create_proof(self, resource: Address) -> Proof:
        vault = self.vaults.get(str(resource))
        if vault is None:
            raise InsufficientBalance(f"account holds no {resource}", resource=str(resource), available="0")
        return vault.create_proof()

    def balance(self, resource: Address) -> Decimal:
        vault = self.vaults.get(str(resource))
        return vault.amount() if vault is not None else Decimal(0)


__all__ = ["Account"]
