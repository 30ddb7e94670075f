from decimal import Decimal

from hypothesis import given, settings
from hypothesis import strategies as st

from engine.config import load_config as load_engine_config
from engine.executor import TransactionExecutor
from testkit.config import load_config
from testkit.env import TestEnv

amounts = st.decimals(min_value=Decimal("-5"), max_value=Decimal("150"), places=2, allow_nan=False, allow_infinity=False)


def _env():
    return TestEnv(TransactionExecutor(config=load_engine_config(env={})), config=load_config(env={}))


@settings(deadline=None)
@given(transfers=st.lists(st.tuples(st.booleans(), amounts), min_size=1, max_size=6))
def test_transfers_conserve_supply(transfers):
    env = _env()
    alice = env.create_user("alice")
    bob = env.create_user("bob")
    token = env.create_token("100")
    expected = {"alice": Decimal(100), "bob": Decimal(0)}

    for alice_sends, amount in transfers:
        sender, recipient = ("alice", "bob") if alice_sends else ("bob", "alice")
        env.acting_as(sender)
        receipt = env.transfer_resource(amount, token, recipient)
        ok = Decimal(0) < amount <= expected[sender]
        assert receipt.is_success is ok
        if ok:
            expected[sender] -= amount
            expected[recipient] += amount

    assert env.get_balance(alice.account, token) == expected["alice"]
    assert env.get_balance(bob.account, token) == expected["bob"]
    assert env.get_balance(alice.account, token) + env.get_balance(bob.account, token) == Decimal(100)
