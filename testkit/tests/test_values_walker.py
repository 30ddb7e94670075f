from decimal import Decimal

import cbor2
import pytest
from cbor2 import CBORTag

from engine import codec
from testkit.values import Kind, Visitor, classify, collect_vaults, walk
from testkit.walker import StateWalker, VaultSnapshot

RES_A = "resource_sim1" + "a" * 40
RES_B = "resource_sim1" + "b" * 40


def vault(vid):
    return CBORTag(codec.TAG_VAULT, vid)


def struct(name, **fields):
    return CBORTag(codec.TAG_STRUCT, [name, fields])


class FakeLedger:
    """Serves hand-built state blobs and vault contents."""

    def __init__(self, states, vaults):
        self.states = states
        self.vaults = vaults

    def read_component_state(self, address):
        return self.states[address]

    def read_vault(self, vault_id):
        return self.vaults[vault_id]


def test_classify_variants():
    assert classify(struct("S")).kind is Kind.STRUCT
    assert classify([1]).kind is Kind.SEQUENCE
    assert classify({"a": 1}).kind is Kind.MAPPING
    assert classify(Decimal(1)).kind is Kind.PRIMITIVE
    assert classify(vault("v")).vault_id == "v"
    assert classify(CBORTag(codec.TAG_ADDRESS, RES_A)).address == RES_A
    assert classify(CBORTag(999, "x")).kind is Kind.TAGGED


def test_vaults_found_at_any_depth_in_document_order():
    state = struct(
        "Pool",
        a=vault("v1"),
        nested=[{"x": struct("Inner", v=vault("v2"))}, CBORTag(999, [vault("v3")])],
        z={"deep": [[[[vault("v4")]]]]},
    )
    assert collect_vaults(state) == ["v1", "v2", "v3", "v4"]


def test_paths_are_reported():
    seen = []

    class Paths(Visitor):
        def visit_vault_ref(self, node, path):
            seen.append(path)

    walk(struct("S", vaults={"k": [vault("v")]}), Paths())
    assert seen == [("vaults", "k", 0)]


def test_deep_nesting_is_walked_iteratively():
    value = vault("bottom")
    for _ in range(200):
        value = [value]
    assert collect_vaults(cbor2.loads(cbor2.dumps(value))) == ["bottom"]


def test_cycles_from_value_sharing_terminate():
    root = {"v": vault("v1"), "items": []}
    root["items"].append(root)
    decoded = cbor2.loads(cbor2.dumps(root, value_sharing=True))
    assert decoded["items"][0] is decoded
    assert collect_vaults(decoded) == ["v1"]


def _ledger(state):
    blob = cbor2.dumps(state)
    vaults = {
        "v1": (RES_A, Decimal("10")),
        "v2": (RES_B, Decimal("2.5")),
        "v3": (RES_A, Decimal("4")),
    }
    return FakeLedger({"component_sim1c": blob}, vaults)


def test_all_balances_last_wins_but_balance_is_first_match():
    ledger = _ledger(struct("T", first=vault("v1"), other=vault("v2"), second=vault("v3")))
    walker = StateWalker(ledger)
    assert walker.get_vaults("component_sim1c") == [
        VaultSnapshot("v1", RES_A, Decimal("10")),
        VaultSnapshot("v2", RES_B, Decimal("2.5")),
        VaultSnapshot("v3", RES_A, Decimal("4")),
    ]
    assert walker.get_all_balances("component_sim1c") == {RES_A: Decimal("4"), RES_B: Decimal("2.5")}
    assert walker.get_balance("component_sim1c", RES_A) == Decimal("10")


def test_walker_sum_mode():
    ledger = _ledger(struct("T", first=vault("v1"), second=vault("v3")))
    walker = StateWalker(ledger, duplicate_vaults="sum")
    assert walker.get_all_balances("component_sim1c") == {RES_A: Decimal("14")}
    assert walker.get_balance("component_sim1c", RES_A) == Decimal("14")


def test_missing_resource_is_zero_not_error():
    walker = StateWalker(_ledger(struct("Empty")))
    assert walker.get_balance("component_sim1c", RES_B) == Decimal(0)
    assert walker.get_all_balances("component_sim1c") == {}


def test_bad_duplicate_mode_rejected():
    with pytest.raises(ValueError):
        StateWalker(_ledger(struct("E")), duplicate_vaults="max")
