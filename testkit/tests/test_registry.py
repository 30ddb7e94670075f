import pytest
from hypothesis import given
from hypothesis import strategies as st

from testkit.config import SelectionPolicy
from testkit.errors import NoCurrentPackageError, NoCurrentUserError, NotFoundError
from testkit.registry import IdentityRegistry, PackageRegistry, Registry


def test_first_write_wins_keeps_first_selection():
    reg = Registry(SelectionPolicy.FIRST_WRITE_WINS)
    reg.register("a", 1)
    reg.register("b", 2)
    assert reg.current == 1
    reg.select("b")
    assert reg.current == 2
    reg.register("c", 3)
    assert reg.current == 2


def test_last_write_wins_follows_newest():
    reg = Registry(SelectionPolicy.LAST_WRITE_WINS)
    reg.register("a", 1)
    reg.register("b", 2)
    assert reg.current == 2
    reg.select("a")
    reg.register("c", 3)
    assert reg.current == 3


def test_overwriting_current_name_moves_selection():
    reg = Registry()
    reg.register("pkg", "old")
    reg.register("pkg", "new")
    assert len(reg) == 1
    assert reg.current == "new"


def test_unknown_names_and_empty_selection_fail():
    users = IdentityRegistry()
    packages = PackageRegistry()
    with pytest.raises(NoCurrentUserError):
        users.current_or_fail()
    with pytest.raises(NoCurrentPackageError):
        packages.current_or_fail()
    with pytest.raises(NotFoundError) as ei:
        users.get("ghost")
    assert ei.value.kind == "user"
    assert ei.value.to_dict()["code"] == "NOT_FOUND"
    with pytest.raises(NotFoundError):
        packages.select("ghost")
    assert packages.current is None


def test_package_resolution():
    packages = PackageRegistry()
    packages.register("hello", "package_sim1aaaa")
    assert packages.resolve(None) == "package_sim1aaaa"
    assert packages.resolve("hello") == "package_sim1aaaa"
    assert packages.resolve("package_sim1bbbb") == "package_sim1bbbb"
    with pytest.raises(NotFoundError):
        packages.resolve("nope")
    assert [p.name for p in packages.packages()] == ["hello"]


names = st.lists(st.text(min_size=1, max_size=8), max_size=20)


@given(names=names, policy=st.sampled_from(list(SelectionPolicy)))
def test_size_counts_distinct_names(names, policy):
    reg = Registry(policy)
    for i, name in enumerate(names):
        reg.register(name, i)
    assert len(reg) == len(set(names))
    for name in set(names):
        assert reg.get(name) == max(i for i, n in enumerate(names) if n == name)
    if names:
        expected = names[0] if policy is SelectionPolicy.FIRST_WRITE_WINS else names[-1]
        assert reg.current_name == expected
    else:
        assert reg.current is None
