"""
testkit.values: a tagged-variant view of the ledger's state encoding.

Component state arrives as CBOR. Decoded *raw* (private tags left as
`cbor2.CBORTag`), every value falls into one of seven variants:

    Struct      tag STRUCT  [name, {field: value}]
    Sequence    array
    Mapping     map
    Primitive   int, text, bytes, bool, null, Decimal, ...
    VaultRef    tag VAULT   vault id
    AddressRef  tag ADDRESS address text
    Tagged      any other tag (kept opaque, its payload is still walked)

`walk(raw, visitor)` performs a depth-first, document-order traversal that is
iterative (nesting depth is unbounded) and visits each shared container once,
so cyclic values produced by CBOR value sharing terminate. Each node is
reported with its path from the root, e.g. ``("vaults", "resource_sim1…")``.

The tag numbers come from a `TagSchema`, defaulting to the reference engine's.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Set, Tuple

from cbor2 import CBORTag

from engine import codec

Path = Tuple[Any, ...]


class Kind(str, Enum):
    STRUCT = "struct"
    SEQUENCE = "sequence"
    MAPPING = "mapping"
    PRIMITIVE = "primitive"
    VAULT_REF = "vault_ref"
    ADDRESS_REF = "address_ref"
    TAGGED = "tagged"


@dataclass(frozen=True)
class TagSchema:
    struct: int = codec.TAG_STRUCT
    vault: int = codec.TAG_VAULT
    address: int = codec.TAG_ADDRESS


DEFAULT_SCHEMA = TagSchema()


# ------------------------------------------------------------------------------
# Variants
# ------------------------------------------------------------------------------


@dataclass(frozen=True)
class Node:
    kind: Kind
    raw: Any

    def children(self) -> Iterator[Tuple[Any, Any]]:
        return iter(())


@dataclass(frozen=True)
class Struct(Node):
    name: str = ""

    def children(self) -> Iterator[Tuple[Any, Any]]:
        fields = self.raw.value[1]
        if isinstance(fields, Mapping):
            return iter(fields.items())
        return iter(())


@dataclass(frozen=True)
class Sequence(Node):
    def children(self) -> Iterator[Tuple[Any, Any]]:
        return iter(enumerate(self.raw))


@dataclass(frozen=True)
class MappingNode(Node):
    def children(self) -> Iterator[Tuple[Any, Any]]:
        return iter(self.raw.items())


@dataclass(frozen=True)
class Primitive(Node):
    pass


@dataclass(frozen=True)
class VaultRef(Node):
    vault_id: str = ""


@dataclass(frozen=True)
class AddressRef(Node):
    address: str = ""


@dataclass(frozen=True)
class Tagged(Node):
    tag: int = 0

    def children(self) -> Iterator[Tuple[Any, Any]]:
        return iter(((self.tag, self.raw.value),))


def classify(raw: Any, schema: TagSchema = DEFAULT_SCHEMA) -> Node:
    """Wrap one raw decoded value in its variant (children stay raw)."""
    if isinstance(raw, CBORTag):
        if raw.tag == schema.vault:
            return VaultRef(Kind.VAULT_REF, raw, vault_id=str(raw.value))
        if raw.tag == schema.address:
            return AddressRef(Kind.ADDRESS_REF, raw, address=str(raw.value))
        if raw.tag == schema.struct and isinstance(raw.value, list) and len(raw.value) == 2:
            return Struct(Kind.STRUCT, raw, name=str(raw.value[0]))
        return Tagged(Kind.TAGGED, raw, tag=raw.tag)
    if isinstance(raw, (list, tuple)):
        return Sequence(Kind.SEQUENCE, raw)
    if isinstance(raw, Mapping):
        return MappingNode(Kind.MAPPING, raw)
    return Primitive(Kind.PRIMITIVE, raw)


# ------------------------------------------------------------------------------
# Traversal
# ------------------------------------------------------------------------------


class Visitor:
    """
    Base visitor. `visit` dispatches to ``visit_<kind>``; unhandled kinds are
    ignored.
    """

    def visit(self, node: Node, path: Path) -> None:
        handler = getattr(self, f"visit_{node.kind.value}", None)
        if handler is not None:
            handler(node, path)


def walk(raw: Any, visitor: Visitor, *, schema: TagSchema = DEFAULT_SCHEMA) -> None:
    """Depth-first, document-order traversal of `raw`, reporting every node."""
    seen: Set[int] = set()
    stack: List[Tuple[Any, Path]] = [(raw, ())]
    while stack:
        value, path = stack.pop()
        if isinstance(value, (list, dict, CBORTag)):
            if id(value) in seen:
                continue
            seen.add(id(value))
        node = classify(value, schema)
        visitor.visit(node, path)
        children = list(node.children())
        for key, child in reversed(children):
            stack.append((child, path + (key,)))


class VaultCollector(Visitor):
    """Accumulates vault references (first occurrence of each id, in order)."""

    def __init__(self) -> None:
        self.refs: List[str] = []
        self.paths: Dict[str, Path] = {}

    def visit_vault_ref(self, node: VaultRef, path: Path) -> None:
        if node.vault_id not in self.paths:
            self.paths[node.vault_id] = path
            self.refs.append(node.vault_id)


def collect_vaults(raw: Any, *, schema: TagSchema = DEFAULT_SCHEMA) -> List[str]:
    collector = VaultCollector()
    walk(raw, collector, schema=schema)
    return collector.refs


__all__ = [
    "Kind",
    "TagSchema",
    "DEFAULT_SCHEMA",
    "Node",
    "Struct",
    "Sequence",
    "MappingNode",
    "Primitive",
    "VaultRef",
    "AddressRef",
    "Tagged",
    "classify",
    "Visitor",
    "walk",
    "VaultCollector",
    "collect_vaults",
]
