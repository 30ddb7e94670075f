"""
engine.transaction: instructions, manifests and signed transactions.

A transaction is an ordered list of instructions executed against one
worktop and one auth zone:

    CALL_FUNCTION                 package, blueprint, function, args
    CALL_METHOD                   component, method, args
    CREATE_PROOF_FROM_ACCOUNT     account, resource
    WITHDRAW_FROM_ACCOUNT         account, resource, amount
    TAKE_FROM_WORKTOP             resource, amount | None, bucket id
    NEW_FIXED_SUPPLY_TOKEN        supply, divisibility, metadata
    DEPOSIT_ALL                   account

Call arguments are carried as individually encoded value blobs (see
`engine.codec.encode_value`), so the signed payload never depends on Python
object identity. Buckets taken from the worktop are referred to by the
placeholder `BucketRef` returned from `TransactionBuilder.take_from_worktop`.

The bytes that get signed are the canonical CBOR of:

    {"network": str, "nonce": int, "signer": hex, "instructions": [[op, ...], ...]}

and the transaction hash is the sha3-256 of those bytes.

Example
-------
    tx = (TransactionBuilder(network="simulator")
          .withdraw_from_account(alice_account, xrd, "10")
          .deposit_all(bob_account)
          .build(nonce=1, signer=alice.public_key))
    signed = tx.sign(alice)
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple

from cbor2 import CBORTag

from . import numeric
from .addresses import Address
from .codec import TAG_BUCKET, canonical_dumps, encode_value
from .crypto import KeyPair

if TYPE_CHECKING:
    from .runtime import TransactionContext


@dataclass(frozen=True)
class BucketRef:
    """Builder-side placeholder for a bucket taken from the worktop."""
    bucket_id: int

    def __ledger_tag__(self) -> CBORTag:
        return CBORTag(TAG_BUCKET, self.bucket_id)


# ------------------------------------------------------------------------------
# Instructions
# ------------------------------------------------------------------------------


class Instruction:
    op: str = ""

    def to_wire(self) -> List[Any]:
        raise NotImplementedError

    def execute(self, ctx: "TransactionContext") -> Any:
        raise NotImplementedError


@dataclass(frozen=True)
class CallFunction(Instruction):
    package: Address
    blueprint: str
    function: str
    args: Tuple[bytes, ...] = ()
    op = "CALL_FUNCTION"

    def to_wire(self) -> List[Any]:
        return [self.op, str(self.package), self.blueprint, self.function, list(self.args)]

    def execute(self, ctx: "TransactionContext") -> Any:
        pkg = ctx.load_package(self.package)
        return ctx.call_function(self.package, self.blueprint, self.function, ctx.decode_args(self.args, pkg))


@dataclass(frozen=True)
class CallMethod(Instruction):
    component: Address
    method: str
    args: Tuple[bytes, ...] = ()
    op = "CALL_METHOD"

    def to_wire(self) -> List[Any]:
        return [self.op, str(self.component), self.method, list(self.args)]

    def execute(self, ctx: "TransactionContext") -> Any:
        rec = ctx.store.get_component(self.component)
        args = ctx.decode_args(self.args, ctx.load_package(rec.package))
        return ctx.call_method(self.component, self.method, args)


@dataclass(frozen=True)
class CreateProofFromAccount(Instruction):
    account: Address
    resource: Address
    op = "CREATE_PROOF_FROM_ACCOUNT"

    def to_wire(self) -> List[Any]:
        return [self.op, str(self.account), str(self.resource)]

    def execute(self, ctx: "TransactionContext") -> Any:
        return ctx.call_method(self.account, "create_proof", [self.resource])


@dataclass(frozen=True)
class WithdrawFromAccount(Instruction):
    account: Address
    resource: Address
    amount: Decimal
    op = "WITHDRAW_FROM_ACCOUNT"

    def to_wire(self) -> List[Any]:
        return [self.op, str(self.account), str(self.resource), str(self.amount)]

    def execute(self, ctx: "TransactionContext") -> Any:
        return ctx.call_method(self.account, "withdraw", [self.resource, self.amount])


@dataclass(frozen=True)
class TakeFromWorktop(Instruction):
    resource: Address
    amount: Optional[Decimal]
    bucket_id: int
    op = "TAKE_FROM_WORKTOP"

    def to_wire(self) -> List[Any]:
        amount = None if self.amount is None else str(self.amount)
        return [self.op, str(self.resource), amount, self.bucket_id]

    def execute(self, ctx: "TransactionContext") -> Any:
        ctx.take_from_worktop(self.resource, self.amount, self.bucket_id)
        return BucketRef(self.bucket_id)


@dataclass(frozen=True)
class NewFixedSupplyToken(Instruction):
    supply: Decimal
    divisibility: int = numeric.DECIMAL_PLACES
    metadata: Tuple[Tuple[str, str], ...] = ()
    op = "NEW_FIXED_SUPPLY_TOKEN"

    def to_wire(self) -> List[Any]:
        return [self.op, str(self.supply), self.divisibility, [list(kv) for kv in self.metadata]]

    def execute(self, ctx: "TransactionContext") -> Any:
        return ctx.mint_fungible(self.supply, self.divisibility, dict(self.metadata))


@dataclass(frozen=True)
class DepositAll(Instruction):
    account: Address
    op = "DEPOSIT_ALL"

    def to_wire(self) -> List[Any]:
        return [self.op, str(self.account)]

    def execute(self, ctx: "TransactionContext") -> Any:
        return ctx.call_method(self.account, "deposit_batch", [ctx.drain_worktop()])


# ------------------------------------------------------------------------------
# Transactions
# ------------------------------------------------------------------------------


@dataclass(frozen=True)
class Transaction:
    network: str
    nonce: int
    signer: str
    instructions: Tuple[Instruction, ...]

    def payload(self) -> bytes:
        """Canonical bytes covered by signatures."""
        return canonical_dumps(
            {
                "network": self.network,
                "nonce": self.nonce,
                "signer": self.signer,
                "instructions": [ins.to_wire() for ins in self.instructions],
            }
        )

    def hash(self) -> str:
        return "0x" + hashlib.sha3_256(self.payload()).hexdigest()

    def sign(self, *keys: KeyPair) -> "SignedTransaction":
        payload = self.payload()
        return SignedTransaction(
            transaction=self,
            signatures=tuple((k.public_key, k.sign(payload)) for k in keys),
        )


@dataclass(frozen=True)
class SignedTransaction:
    transaction: Transaction
    signatures: Tuple[Tuple[str, bytes], ...] = ()

    @property
    def signer_keys(self) -> List[str]:
        return [pk for pk, _ in self.signatures]


class TransactionBuilder:
    """Fluent builder for instruction sequences."""

    def __init__(self, network: str = "simulator") -> None:
        self.network = network
        self._instructions: List[Instruction] = []
        self._next_bucket = 0

    def __len__(self) -> int:
        return len(self._instructions)

    @property
    def instructions(self) -> Tuple[Instruction, ...]:
        return tuple(self._instructions)

    def add(self, instruction: Instruction) -> "TransactionBuilder":
        self._instructions.append(instruction)
        return self

    def call_function(self, package: str, blueprint: str, function: str, *args: Any) -> "TransactionBuilder":
        return self.add(CallFunction(Address(package), blueprint, function, _encode_args(args)))

    def call_method(self, component: str, method: str, *args: Any) -> "TransactionBuilder":
        return self.add(CallMethod(Address(component), method, _encode_args(args)))

    def create_proof_from_account(self, account: str, resource: str) -> "TransactionBuilder":
        return self.add(CreateProofFromAccount(Address(account), Address(resource)))

    def withdraw_from_account(self, account: str, resource: str, amount: numeric.DecimalLike) -> "TransactionBuilder":
        return self.add(WithdrawFromAccount(Address(account), Address(resource), numeric.to_decimal(amount)))

    def take_from_worktop(self, resource: str, amount: Optional[numeric.DecimalLike] = None) -> BucketRef:
        """Queue a worktop take and return the placeholder to pass as an argument."""
        self._next_bucket += 1
        amt = None if amount is None else numeric.to_decimal(amount)
        self.add(TakeFromWorktop(Address(resource), amt, self._next_bucket))
        return BucketRef(self._next_bucket)

    def new_fixed_supply_token(
        self,
        supply: numeric.DecimalLike,
        *,
        divisibility: int = numeric.DECIMAL_PLACES,
        metadata: Optional[Dict[str, str]] = None,
    ) -> "TransactionBuilder":
        meta = tuple(sorted((str(k), str(v)) for k, v in (metadata or {}).items()))
        return self.add(NewFixedSupplyToken(numeric.to_decimal(supply), int(divisibility), meta))

    def deposit_all(self, account: str) -> "TransactionBuilder":
        return self.add(DepositAll(Address(account)))

    def build(self, *, nonce: int, signer: str) -> Transaction:
        return Transaction(
            network=self.network,
            nonce=int(nonce),
            signer=str(signer),
            instructions=tuple(self._instructions),
        )


def _encode_args(args: Sequence[Any]) -> Tuple[bytes, ...]:
    return tuple(encode_value(a) for a in args)


__all__ = [
    "BucketRef",
    "Instruction",
    "CallFunction",
    "CallMethod",
    "CreateProofFromAccount",
    "WithdrawFromAccount",
    "TakeFromWorktop",
    "NewFixedSupplyToken",
    "DepositAll",
    "Transaction",
    "SignedTransaction",
    "TransactionBuilder",
]
