import pytest

from engine.addresses import PACKAGE, derive_address
from engine.errors import NotFound, PackageValidationError
from engine.package import PackageCache, load_package, validate_source

ADDR = derive_address(PACKAGE, b"test", 1)

GOOD = b"""
from engine.blueprint import Blueprint


class Counter(Blueprint):
    def __init__(self):
        self.count = 0

    @classmethod
    def new(cls):
        return cls().globalize()

    def bump(self):
        self.count += 1
        return self.count
"""


def test_valid_package_loads_blueprints():
    pkg = load_package(ADDR, GOOD, max_bytes=64 * 1024)
    cls = pkg.blueprint("Counter")
    assert cls.__name__ == "Counter"
    assert cls.__ledger_package__ == ADDR
    with pytest.raises(NotFound):
        pkg.blueprint("Missing")


@pytest.mark.parametrize(
    "source, fragment",
    [
        (b"import os\n", "import of 'os'"),
        (b"from subprocess import run\n", "subprocess"),
        (b"from . import x\n", "import from"),
        (b"x = open('f')\n", "'open'"),
        (b"x = eval('1')\n", "'eval'"),
        (b"class A:\n    pass\nA.__class__\n", "__class__"),
        (b"def f():\n    global y\n", "global"),
        (b"m = __builtins__['__import__']('os')\n", "'__builtins__'"),
        (b"x = getattr(object, 'mro')\n", "'getattr'"),
    ],
)
def test_strict_validation_rejects(source, fragment):
    with pytest.raises(PackageValidationError) as ei:
        validate_source(source, max_bytes=1024)
    assert fragment in ei.value.message
    assert ei.value.code == "INVALID_PACKAGE"


def test_non_strict_skips_static_checks():
    validate_source(b"import os\n", max_bytes=1024, strict=False)


def test_size_and_syntax_errors():
    with pytest.raises(PackageValidationError, match="limit"):
        validate_source(b"x = 1\n" * 100, max_bytes=10)
    with pytest.raises(PackageValidationError, match="empty"):
        validate_source(b"", max_bytes=10)
    with pytest.raises(PackageValidationError, match="syntax"):
        validate_source(b"def (:\n", max_bytes=1024)
    with pytest.raises(PackageValidationError, match="UTF-8"):
        validate_source(b"\xff\xfe", max_bytes=1024)


def test_package_without_blueprints_rejected():
    with pytest.raises(PackageValidationError, match="no blueprints"):
        load_package(ADDR, b"X = 1\n", max_bytes=1024)


def test_package_raising_at_import_rejected():
    with pytest.raises(PackageValidationError, match="failed to load"):
        load_package(ADDR, b"raise ValueError('boom')\n", max_bytes=1024)


def test_cache_loads_lazily_and_reports_missing():
    cache = PackageCache(max_bytes=64 * 1024)
    with pytest.raises(NotFound):
        cache.get(ADDR)
    first = cache.get(ADDR, GOOD)
    assert cache.get(ADDR) is first
