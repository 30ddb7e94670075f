from decimal import Decimal

import pytest

from engine.config import load_config as load_engine_config
from engine.errors import InvalidNonce
from testkit import (
    DuplicateNameError,
    NoCurrentPackageError,
    NoCurrentUserError,
    NotFoundError,
    SelectionPolicy,
    TestEnv,
    TransactionFailedError,
    load_config,
)
from testkit.interfaces import LedgerExecutor

PACKAGE = "hello-world"
BLUEPRINT = "Hello"


def test_create_user(env):
    env.create_user("alice")
    env.create_user("bob")
    env.create_user("carol")
    assert "alice" in env.users and "bob" in env.users and "carol" in env.users
    assert len(env.users) == 3


def test_get_user_returns_created_identity(env):
    alice = env.create_user("alice")
    assert env.get_user("alice") == alice
    with pytest.raises(NotFoundError):
        env.get_user("mallory")


def test_acting_as(env):
    user = env.create_user("alice")
    env.create_user("bob")
    env.acting_as("alice")
    assert env.current_user.account == user.account
    assert env.current_user.identity == user.identity
    with pytest.raises(NotFoundError):
        env.acting_as("nobody")


def test_first_user_is_current_by_default(env):
    first = env.create_user("first")
    env.create_user("second")
    assert env.current_user_or_fail() == first


def test_last_write_wins_policy(executor):
    env = TestEnv(executor, config=load_config(env={}, overrides={"selection_policy": "last"}))
    env.create_user("first")
    second = env.create_user("second")
    assert env.users.policy is SelectionPolicy.LAST_WRITE_WINS
    assert env.current_user == second


def test_duplicate_user_policy(executor, env):
    a1 = env.create_user("alice")
    a2 = env.create_user("alice")
    assert env.get_user("alice") == a2 != a1
    assert env.current_user == a2
    strict = TestEnv(executor, config=load_config(env={}, overrides={"on_duplicate_user": "error"}))
    strict.create_user("alice")
    with pytest.raises(DuplicateNameError):
        strict.create_user("alice")


def test_build_package(hello_env):
    hello_env.using_package(PACKAGE)
    address = hello_env.get_package(PACKAGE)
    assert address.kind == "package"
    assert hello_env.current_package_or_fail() == address


def test_package_functions(hello_env):
    receipt = hello_env.call_function(BLUEPRINT, "instantiate")
    assert receipt.is_success
    assert len(receipt.new_component_addresses) == 1
    assert len(receipt.new_resource_addresses) == 1


def test_package_functions_error(hello_env):
    receipt = hello_env.call_function(BLUEPRINT, "instantiate_other")
    assert not receipt.is_success
    assert receipt.error["code"] == "NOT_FOUND"


def test_explicit_package_hint(hello_env, treasury_path):
    hello = hello_env.get_package(PACKAGE)
    hello_env.publish_package_from_path("treasury", treasury_path)
    assert hello_env.current_package == hello
    assert hello_env.call_function("Treasury", "new", package="treasury").is_success
    assert hello_env.call_function(BLUEPRINT, "instantiate", package=str(hello)).is_success
    assert not hello_env.call_function("Treasury", "new").is_success


def _instantiate(env):
    receipt = env.call_function(BLUEPRINT, "instantiate").expect_success()
    return receipt.new_component_addresses[0], receipt.new_resource_addresses[0]


def test_component_func_auth(hello_env):
    component, badge = _instantiate(hello_env)
    assert hello_env.call_method_auth(component, "update_state", badge, [42]).is_success
    receipt = hello_env.call_method_auth(component, "protected_update_state", badge, [7])
    assert receipt.is_success
    assert receipt.output(1) == 42


def test_component_func(hello_env):
    component, _ = _instantiate(hello_env)
    receipt = hello_env.call_method(component, "update_state", [42])
    assert receipt.is_success
    assert receipt.output(0) == 0


def test_protected_method_needs_badge(hello_env):
    component, badge = _instantiate(hello_env)
    receipt = hello_env.call_method(component, "protected_update_state", [1])
    assert not receipt.is_success
    assert receipt.error["code"] == "UNAUTHORIZED"
    hello_env.acting_as("user")
    receipt = hello_env.call_method_auth(component, "protected_update_state", badge, [1])
    assert not receipt.is_success
    assert receipt.error["code"] == "INSUFFICIENT_BALANCE"


def test_badge_lands_in_acting_account(hello_env):
    _, badge = _instantiate(hello_env)
    admin = hello_env.get_user("admin")
    assert hello_env.get_balance(admin.account, badge) == Decimal(1)
    assert hello_env.account_balance(admin, badge) == Decimal(1)


def test_create_token_send_amount(env):
    admin = env.create_user("admin")
    user = env.create_user("user")
    env.acting_as("admin")

    token = env.create_token(Decimal("10000"), {"symbol": "TST"})
    assert env.get_all_balances(admin.account)[token] == Decimal("10000")
    assert env.get_balance(user.account, token) == Decimal(0)

    receipt = env.transfer_resource(Decimal("10"), token, user)
    assert receipt.is_success
    assert env.get_balance(admin.account, token) == Decimal("9990")
    assert env.get_balance(user.account, token) == Decimal("10")
    assert env.account_balance(user, token) == Decimal("10")


def test_transfer_to_user_by_name(env):
    env.create_user("admin")
    env.create_user("user")
    token = env.create_token("5")
    assert env.transfer_resource("5", token, "user").is_success
    assert env.get_balance(env.get_user("user").account, token) == Decimal(5)
    with pytest.raises(NotFoundError):
        env.transfer_resource("1", token, "ghost")


def test_overdraft_is_a_failed_receipt_not_an_abort(env):
    admin = env.create_user("admin")
    user = env.create_user("user")
    token = env.create_token("100")
    receipt = env.transfer_resource("100.000000000000000001", token, user)
    assert not receipt.is_success
    assert receipt.error["code"] == "INSUFFICIENT_BALANCE"
    assert env.get_balance(admin.account, token) == Decimal(100)
    assert env.get_balance(user.account, token) == Decimal(0)


@pytest.mark.parametrize("amount", ["0", "-3"])
def test_non_positive_transfer_fails_in_receipt(env, amount):
    env.create_user("admin")
    user = env.create_user("user")
    token = env.create_token("100")
    assert env.transfer_resource(amount, token, user).error["code"] == "INVALID_AMOUNT"


def test_floats_are_rejected_before_submission(env):
    env.create_user("admin")
    with pytest.raises(TypeError):
        env.create_token(1.5)


def test_create_token_failure_raises(env):
    env.create_user("admin")
    with pytest.raises(TransactionFailedError) as ei:
        env.create_token("1.5", divisibility=0)
    assert ei.value.receipt.error["code"] == "INVALID_AMOUNT"


def test_faucet_visible_to_walker(env, executor, engine_config):
    alice = env.create_user("alice")
    balances = env.get_all_balances(alice.account)
    assert balances == {executor.native_token: engine_config.faucet_amount}
    assert [v.resource_address for v in env.get_vaults(alice.account)] == [executor.native_token]


def test_nested_component_vaults(env, treasury_path):
    admin = env.create_user("admin")
    env.publish_package_from_path("treasury", treasury_path)
    component = env.call_function("Treasury", "new").expect_success().component(0)
    token = env.create_token("1000")

    def fund(builder, user):
        builder.withdraw_from_account(user.account, token, "600")
        bucket = builder.take_from_worktop(token)
        builder.call_method(component, "deposit", bucket)
        builder.call_method(component, "split_reserve", "ops", "100")
        builder.call_method(component, "freeze", "50")
        builder.call_method(component, "freeze", "25")

    env.run(fund).expect_success()
    assert len(env.get_vaults(component)) == 4
    assert [v.amount for v in env.get_vaults(component)] == [Decimal(425), Decimal(100), Decimal(50), Decimal(25)]
    assert env.get_balance(component, token) == Decimal(425)
    assert env.get_all_balances(component)[token] == Decimal(25)
    sums = TestEnv(env.executor, config=load_config(env={}, overrides={"duplicate_vaults": "sum"}))
    assert sums.get_balance(component, token) == Decimal(600)
    assert env.get_balance(admin.account, token) == Decimal(400)


def test_bucket_in_component_state_fails(env, treasury_path):
    env.create_user("admin")
    env.publish_package_from_path("treasury", treasury_path)
    component = env.call_function("Treasury", "new").expect_success().component(0)
    token = env.create_token("10")

    def stash(builder, user):
        builder.withdraw_from_account(user.account, token, "1")
        builder.call_method(component, "keep_bucket", builder.take_from_worktop(token))

    assert env.run(stash).error["code"] == "INVALID_ACCESS"


def test_blueprint_panic_is_a_revert(env, treasury_path):
    env.create_user("admin")
    env.publish_package_from_path("treasury", treasury_path)
    component = env.call_function("Treasury", "new").expect_success().component(0)
    receipt = env.call_method(component, "panic")
    assert receipt.error["code"] == "REVERT"
    assert "ZeroDivisionError" in receipt.error["message"]


def test_missing_user_or_package_aborts(env):
    with pytest.raises(NoCurrentUserError):
        env.call_method("component_sim1" + "0" * 40, "anything")
    with pytest.raises(NoCurrentUserError):
        env.create_token("1")
    env.create_user("admin")
    with pytest.raises(NoCurrentPackageError):
        env.call_function(BLUEPRINT, "instantiate")
    with pytest.raises(NotFoundError):
        env.using_package(PACKAGE)


def test_nonces_advance_per_identity(hello_env):
    admin = hello_env.get_user("admin")
    start = hello_env.executor.next_nonce(admin.identity)
    hello_env.call_function(BLUEPRINT, "instantiate")
    hello_env.call_function(BLUEPRINT, "instantiate_other")
    assert hello_env.executor.next_nonce(admin.identity) == start + 2
    with pytest.raises(InvalidNonce):
        hello_env.executor.store.consume_nonce(admin.identity, start)


def test_lookups_never_fall_back_to_defaults(env):
    with pytest.raises(NoCurrentUserError):
        env.current_user_or_fail()
    with pytest.raises(NoCurrentPackageError):
        env.current_package_or_fail()
    env.create_user("admin")
    with pytest.raises(NotFoundError):
        env.get_user("nobody")
    with pytest.raises(NotFoundError):
        env.get_package("nothing")
    assert env.current_package is None


def test_transactions_target_the_executor_network():
    env = TestEnv(engine_config=load_engine_config(env={}, overrides={"network": "localnet"}))
    assert isinstance(env.executor, LedgerExecutor)
    assert env.network == env.executor.network == "localnet"
    alice = env.create_user("alice")
    token = env.create_token("3")
    assert env.get_balance(alice.account, token) == Decimal(3)
