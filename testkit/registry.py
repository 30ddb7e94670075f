"""
testkit.registry: named users and packages with a "current" selection.

Both registries share one shape: an insertion-ordered ``name → value`` map and
the *name* of the current selection. Tracking the name (not the value) means
that re-registering a name moves "current" to the new value too, so the
current selection is always a value held by the registry.

When a name is registered and nothing was explicitly chosen, the
`SelectionPolicy` decides whether the new entry becomes current:

    FIRST_WRITE_WINS  only when there is no current selection yet
    LAST_WRITE_WINS   always
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Generic, Iterator, List, Optional, Type, TypeVar

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from engine.addresses import Address

from .config import SelectionPolicy
from .errors import HarnessError, NoCurrentPackageError, NoCurrentUserError, NotFoundError

T = TypeVar("T")


@dataclass(frozen=True)
class User:
    """A named test identity: public key hex, signing key and account address."""

    name: str
    identity: str
    account: Address
    signing_key: Ed25519PrivateKey = field(repr=False, compare=False)


@dataclass(frozen=True)
class Package:
    name: str
    address: Address


class Registry(Generic[T]):
    kind = "entry"
    no_current: Type[HarnessError] = HarnessError

    def __init__(self, policy: SelectionPolicy = SelectionPolicy.FIRST_WRITE_WINS) -> None:
        self.policy = policy
        self._entries: Dict[str, T] = {}
        self._current_name: Optional[str] = None

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def names(self) -> List[str]:
        return list(self._entries)

    def register(self, name: str, value: T) -> T:
        """Insert or overwrite `name`, then apply the selection policy."""
        self._entries[name] = value
        if self._current_name is None or self.policy is SelectionPolicy.LAST_WRITE_WINS:
            self._current_name = name
        return value

    def get(self, name: str) -> T:
        try:
            return self._entries[name]
        except KeyError:
            raise NotFoundError(self.kind, name) from None

    def select(self, name: str) -> T:
        value = self.get(name)
        self._current_name = name
        return value

    @property
    def current_name(self) -> Optional[str]:
        return self._current_name

    @property
    def current(self) -> Optional[T]:
        if self._current_name is None:
            return None
        return self._entries[self._current_name]

    def current_or_fail(self) -> T:
        value = self.current
        if value is None:
            raise self.no_current()
        return value


class IdentityRegistry(Registry[User]):
    kind = "user"
    no_current = NoCurrentUserError


class PackageRegistry(Registry[Address]):
    kind = "package"
    no_current = NoCurrentPackageError

    def packages(self) -> List[Package]:
        return [Package(name, addr) for name, addr in self._entries.items()]

    def resolve(self, hint: Optional[str]) -> Address:
        """
        A package address from a registered name, a raw package address, or
        (when `hint` is None) the current package.
        """
        if hint is None:
            return self.current_or_fail()
        if hint in self._entries:
            return self._entries[hint]
        if hint.startswith("package_"):
            return Address(hint)
        raise NotFoundError(self.kind, hint)


__all__ = ["User", "Package", "Registry", "IdentityRegistry", "PackageRegistry"]
