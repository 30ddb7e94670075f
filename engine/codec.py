"""
engine.codec: the ledger's self-describing value format.

Component state, call arguments and instruction outputs are encoded as
deterministic CBOR (via `cbor2`, canonical mode) with a handful of private
semantic tags for ledger-native values:

    TAG_STRUCT   [name: text, fields: map]     blueprint instances, dataclasses
    TAG_ADDRESS  text                          `engine.addresses.Address`
    TAG_VAULT    text (vault id)               vault references (persistent)
    TAG_BUCKET   uint (bucket id)              buckets (transient only)
    TAG_PROOF    [resource: text, amount]      proofs (transient only)

Decimals use the standard CBOR decimal-fraction tag (4). Floats and sets are
rejected. Map keys must be text, bytes or int; `Address` keys are written as
plain text.

Ledger-native handle types opt in by implementing ``__ledger_tag__()`` which
returns a `cbor2.CBORTag`. Blueprint instances implement
``__ledger_struct__()`` returning ``(name, fields)``.

Decoding is hook-driven: `decode_value(data, hooks=...)` maps each private tag
to a Python value via a callable. Without hooks, addresses become `Address`,
structs become `Struct`, vaults become `VaultRef`, and everything else stays a
raw `cbor2.CBORTag`.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

import cbor2
from cbor2 import CBORTag

from .addresses import Address
from .errors import InvalidAccess

TAG_STRUCT = 40100
TAG_ADDRESS = 40101
TAG_VAULT = 40102
TAG_BUCKET = 40103
TAG_PROOF = 40104

TRANSIENT_TAGS = frozenset({TAG_BUCKET, TAG_PROOF})

TagHook = Callable[[Any], Any]


@dataclass(frozen=True)
class VaultRef:
    """Reference to a vault by id, as found in encoded state."""
    vault_id: str


@dataclass(frozen=True)
class Struct:
    """A decoded struct whose class is not known to the decoder."""
    name: str
    fields: Dict[str, Any]


# -----------------------------------------------------------------------------
# Encoding
# -----------------------------------------------------------------------------


def _key(k: Any) -> Any:
    if isinstance(k, Address):
        return str(k)
    if isinstance(k, (str, bytes, int)) and not isinstance(k, bool):
        return k
    raise InvalidAccess(f"unsupported map key type: {type(k).__name__}", op="encode")


def _struct_fields(value: Any) -> Optional[Tuple[str, Dict[str, Any]]]:
    hook = getattr(value, "__ledger_struct__", None)
    if callable(hook):
        return hook()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return type(value).__name__, {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
    return None


def to_cbor_tree(value: Any, *, transient: bool = False) -> Any:
    """
    Convert a Python value into a tree `cbor2` can encode, replacing ledger
    values by their tags. `transient=False` (component state) rejects buckets
    and proofs.
    """
    if value is None or isinstance(value, (bool, int, bytes, Decimal)):
        return value
    if isinstance(value, float):
        raise InvalidAccess("floats are not permitted in ledger values; use Decimal", op="encode")
    if isinstance(value, Address):
        return CBORTag(TAG_ADDRESS, str(value))
    if isinstance(value, str):
        return value
    if isinstance(value, VaultRef):
        return CBORTag(TAG_VAULT, value.vault_id)

    tag_hook = getattr(value, "__ledger_tag__", None)
    if callable(tag_hook):
        tag = tag_hook()
        if tag.tag in TRANSIENT_TAGS and not transient:
            raise InvalidAccess(
                f"{type(value).__name__} cannot be stored in component state", op="encode"
            )
        return tag

    if isinstance(value, (list, tuple)):
        return [to_cbor_tree(v, transient=transient) for v in value]
    if isinstance(value, (set, frozenset)):
        raise InvalidAccess("sets are not permitted in ledger values; use a list", op="encode")
    if isinstance(value, Mapping):
        return {_key(k): to_cbor_tree(v, transient=transient) for k, v in value.items()}
    if isinstance(value, Struct):
        return CBORTag(TAG_STRUCT, [value.name, to_cbor_tree(value.fields, transient=transient)])

    struct = _struct_fields(value)
    if struct is not None:
        name, fields = struct
        return CBORTag(TAG_STRUCT, [name, to_cbor_tree(fields, transient=transient)])

    raise InvalidAccess(f"unsupported ledger value type: {type(value).__name__}", op="encode")


def encode_value(value: Any, *, transient: bool = True) -> bytes:
    """Encode `value` to canonical CBOR bytes."""
    return cbor2.dumps(to_cbor_tree(value, transient=transient), canonical=True)


def encode_state(instance: Any) -> bytes:
    """Encode component state; buckets and proofs are rejected."""
    return encode_value(instance, transient=False)


# -----------------------------------------------------------------------------
# Decoding
# -----------------------------------------------------------------------------


def _default_struct(value: Any) -> Any:
    name, fields = value
    return Struct(str(name), dict(fields))


DEFAULT_HOOKS: Dict[int, TagHook] = {
    TAG_ADDRESS: lambda v: Address(v),
    TAG_VAULT: lambda v: VaultRef(str(v)),
    TAG_STRUCT: _default_struct,
}


def decode_value(data: bytes, *, hooks: Optional[Mapping[int, TagHook]] = None) -> Any:
    """
    Decode CBOR `data`. `hooks` overrides/extends `DEFAULT_HOOKS`; tags with no
    hook are returned as `cbor2.CBORTag`.
    """
    table: Dict[int, TagHook] = dict(DEFAULT_HOOKS)
    if hooks:
        table.update(hooks)

    def tag_hook(*args: Any) -> Any:
        # cbor2 5 calls (decoder, tag), cbor2 6 calls (tag, immutable).
        tag = next(a for a in args if isinstance(a, CBORTag))
        fn = table.get(tag.tag)
        if fn is None:
            return tag
        return fn(tag.value)

    return cbor2.loads(bytes(data), tag_hook=tag_hook)


def decode_raw(data: bytes) -> Any:
    """Decode CBOR `data` leaving every private tag as a raw `cbor2.CBORTag`."""
    return cbor2.loads(bytes(data))


def canonical_dumps(obj: Any) -> bytes:
    """Canonical CBOR for signing payloads (plain data only)."""
    return cbor2.dumps(obj, canonical=True)


__all__ = [
    "TAG_STRUCT",
    "TAG_ADDRESS",
    "TAG_VAULT",
    "TAG_BUCKET",
    "TAG_PROOF",
    "TRANSIENT_TAGS",
    "VaultRef",
    "Struct",
    "to_cbor_tree",
    "encode_value",
    "encode_state",
    "decode_value",
    "decode_raw",
    "canonical_dumps",
]
