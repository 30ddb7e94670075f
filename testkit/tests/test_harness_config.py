import pytest

from testkit.config import HarnessConfig, SelectionPolicy, load_config, summary


def test_defaults():
    cfg = load_config(env={})
    assert cfg == HarnessConfig()
    assert cfg.selection_policy is SelectionPolicy.FIRST_WRITE_WINS


def test_env_and_overrides():
    cfg = load_config(env={"TESTKIT_SELECTION_POLICY": "last", "TESTKIT_DUPLICATE_VAULTS": "SUM"})
    assert cfg.selection_policy is SelectionPolicy.LAST_WRITE_WINS
    assert cfg.duplicate_vaults == "sum"
    cfg = load_config(env={"TESTKIT_SELECTION_POLICY": "last"}, overrides={"selection_policy": SelectionPolicy.FIRST_WRITE_WINS})
    assert cfg.selection_policy is SelectionPolicy.FIRST_WRITE_WINS
    assert "select=first" in summary(cfg)


@pytest.mark.parametrize(
    "env",
    [
        {"TESTKIT_SELECTION_POLICY": "random"},
        {"TESTKIT_ON_DUPLICATE_USER": "merge"},
        {"TESTKIT_DUPLICATE_VAULTS": "max"},
    ],
)
def test_invalid_values_rejected(env):
    with pytest.raises(ValueError):
        load_config(env=env)
