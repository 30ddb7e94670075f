"""
engine.package: validate and load package code.

Package code is UTF-8 Python source. Publishing runs a static validation pass
over the AST (no execution) and loading executes the source in a fresh,
isolated module namespace, then collects the `Blueprint` subclasses it
defines.

Validation rules (strict mode)
------------------------------
* Imports only from the allow-listed modules below (`engine.blueprint`,
  `decimal`, `typing`, `dataclasses`, `__future__`).
* No use of I/O, reflection or dynamic-code builtins (`open`, `eval`, `exec`,
  `compile`, `__import__`, `globals`, `locals`, `vars`, `getattr`, `setattr`,
  `delattr`, `input`, `breakpoint`).
* No dunder names or attributes other than `__init__` / `__name__`, so
  `__builtins__` and friends are unreachable.
* Size limited by `EngineConfig.max_code_bytes`.

Non-strict mode keeps only the size and syntax checks; useful when a test wants
to exercise engine failure paths from inside blueprint code.
"""

from __future__ import annotations

import ast
import logging
import sys
import types
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Set

from .addresses import Address
from .blueprint import Blueprint
from .errors import NotFound, PackageValidationError

log = logging.getLogger(__name__)

ALLOWED_IMPORT_MODULES: Set[str] = {
    "engine.blueprint",
    "decimal",
    "typing",
    "dataclasses",
    "__future__",
}

FORBIDDEN_NAMES: Set[str] = {
    "open",
    "eval",
    "exec",
    "compile",
    "__import__",
    "globals",
    "locals",
    "vars",
    "input",
    "breakpoint",
    "setattr",
    "delattr",
    "getattr",
}

ALLOWED_DUNDERS: Set[str] = {"__init__", "__name__"}


# --------------------------------------------------------------------------- #
# Validation
# --------------------------------------------------------------------------- #


class _Validator(ast.NodeVisitor):
    def __init__(self, filename: str):
        self.filename = filename

    def _fail(self, node: ast.AST, message: str) -> None:
        raise PackageValidationError(
            message, file=self.filename, line=getattr(node, "lineno", None)
        )

    def visit_Import(self, node: ast.Import) -> None:
        for alias in node.names:
            if alias.name not in ALLOWED_IMPORT_MODULES:
                self._fail(node, f"import of {alias.name!r} is not allowed")

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        if node.level or (node.module or "") not in ALLOWED_IMPORT_MODULES:
            self._fail(node, f"import from {node.module!r} is not allowed")

    def visit_Name(self, node: ast.Name) -> None:
        name = node.id
        if name in FORBIDDEN_NAMES:
            self._fail(node, f"use of {name!r} is not allowed")
        if name.startswith("__") and name.endswith("__") and name not in ALLOWED_DUNDERS:
            self._fail(node, f"access to {name!r} is not allowed")

    def visit_Attribute(self, node: ast.Attribute) -> None:
        attr = node.attr
        if attr.startswith("__") and attr.endswith("__") and attr not in ALLOWED_DUNDERS:
            self._fail(node, f"access to {attr!r} is not allowed")
        self.generic_visit(node)

    def visit_Global(self, node: ast.Global) -> None:
        self._fail(node, "global statements are not allowed")


def validate_source(code: bytes, *, max_bytes: int, strict: bool = True, filename: str = "<package>") -> ast.Module:
    """
    Parse and validate package `code`. Returns the AST on success.

    Raises:
        PackageValidationError with structured context.
    """
    if not isinstance(code, (bytes, bytearray, memoryview)):
        raise PackageValidationError("package code must be bytes")
    if len(code) == 0:
        raise PackageValidationError("package code is empty")
    if len(code) > max_bytes:
        raise PackageValidationError(
            f"package code is {len(code)} bytes, limit is {max_bytes}", size=len(code), limit=max_bytes
        )
    try:
        source = bytes(code).decode("utf-8")
    except UnicodeDecodeError as e:
        raise PackageValidationError(f"package code is not UTF-8: {e}") from e
    try:
        tree = ast.parse(source, filename=filename)
    except SyntaxError as e:
        raise PackageValidationError(f"syntax error: {e.msg}", file=filename, line=e.lineno) from e
    if strict:
        _Validator(filename).visit(tree)
    return tree


# --------------------------------------------------------------------------- #
# Loading
# --------------------------------------------------------------------------- #


@dataclass
class LoadedPackage:
    """A package module ready for dispatch."""

    address: Address
    blueprints: Dict[str, type]
    structs: Dict[str, type] = field(default_factory=dict)

    def blueprint(self, name: str) -> type:
        cls = self.blueprints.get(name)
        if cls is None:
            raise NotFound(f"no blueprint {name!r} in {self.address}", kind="blueprint", key=name)
        return cls


def load_package(address: Address, code: bytes, *, max_bytes: int, strict: bool = True) -> LoadedPackage:
    """Validate, execute and index package `code` published at `address`."""
    filename = f"<package {address}>"
    tree = validate_source(code, max_bytes=max_bytes, strict=strict, filename=filename)

    module = types.ModuleType(f"ledger_package_{address.split('1', 1)[-1]}")
    # Registered only while executing so class decorators can resolve the module.
    sys.modules[module.__name__] = module
    try:
        exec(compile(tree, filename, "exec"), module.__dict__)
    except Exception as e:
        raise PackageValidationError(f"package failed to load: {type(e).__name__}: {e}") from e
    finally:
        sys.modules.pop(module.__name__, None)

    blueprints: Dict[str, type] = {}
    structs: Dict[str, type] = {}
    for name, obj in module.__dict__.items():
        if not isinstance(obj, type) or obj.__module__ != module.__name__:
            continue
        structs[name] = obj
        if issubclass(obj, Blueprint):
            obj.__ledger_package__ = address  # type: ignore[attr-defined]
            blueprints[name] = obj

    if not blueprints:
        raise PackageValidationError("package defines no blueprints")
    log.debug("loaded package %s blueprints=%s", address, sorted(blueprints))
    return LoadedPackage(address=address, blueprints=blueprints, structs=structs)


def builtin_package(address: Address, classes: Mapping[str, type]) -> LoadedPackage:
    """Wrap engine-provided blueprint classes as a package."""
    for cls in classes.values():
        cls.__ledger_package__ = address  # type: ignore[attr-defined]
    return LoadedPackage(address=address, blueprints=dict(classes), structs=dict(classes))


class PackageCache:
    """Loaded packages by address, loaded lazily from store records."""

    def __init__(self, *, max_bytes: int, strict: bool = True) -> None:
        self.max_bytes = max_bytes
        self.strict = strict
        self._loaded: Dict[Address, LoadedPackage] = {}

    def add(self, pkg: LoadedPackage) -> None:
        self._loaded[pkg.address] = pkg

    def get(self, address: Address, code: Optional[bytes] = None) -> LoadedPackage:
        pkg = self._loaded.get(address)
        if pkg is None:
            if code is None:
                raise NotFound(f"no package at {address}", kind="package", key=str(address))
            pkg = load_package(address, code, max_bytes=self.max_bytes, strict=self.strict)
            self._loaded[address] = pkg
        return pkg


__all__ = [
    "ALLOWED_IMPORT_MODULES",
    "FORBIDDEN_NAMES",
    "validate_source",
    "LoadedPackage",
    "load_package",
    "builtin_package",
    "PackageCache",
]
