from decimal import Decimal

import pytest

from engine.config import EngineConfig, load_config, summary


def test_defaults_from_empty_env():
    cfg = load_config(env={})
    assert cfg == EngineConfig()
    assert cfg.faucet_amount == Decimal(1_000_000)
    assert cfg.max_code_bytes == 64 * 1024


def test_env_values_are_parsed():
    cfg = load_config(
        env={
            "LEDGER_ENGINE_NETWORK": "localnet",
            "LEDGER_ENGINE_FAUCET_AMOUNT": "250.5",
            "LEDGER_ENGINE_MAX_CODE_BYTES": "1MiB",
            "LEDGER_ENGINE_STRICT": "off",
            "LEDGER_ENGINE_KEY_SEED": "fixed",
        }
    )
    assert cfg.network == "localnet"
    assert cfg.faucet_amount == Decimal("250.5")
    assert cfg.max_code_bytes == 1024 * 1024
    assert cfg.strict_packages is False
    assert cfg.key_seed == "fixed"


def test_overrides_win_over_env():
    cfg = load_config(env={"LEDGER_ENGINE_NETWORK": "a"}, overrides={"network": "b", "strict_packages": False})
    assert cfg.network == "b"
    assert cfg.strict_packages is False


@pytest.mark.parametrize(
    "env",
    [
        {"LEDGER_ENGINE_MAX_CODE_BYTES": "lots"},
        {"LEDGER_ENGINE_FAUCET_AMOUNT": "-1"},
        {"LEDGER_ENGINE_NETWORK": ""},
    ],
)
def test_invalid_values_rejected(env):
    with pytest.raises(ValueError):
        load_config(env=env)


def test_summary_mentions_knobs():
    s = summary(load_config(env={}))
    assert "net=simulator" in s and "strict=1" in s


def test_git_describe_env_override(monkeypatch):
    from engine.version import git_describe

    git_describe.cache_clear()
    monkeypatch.setenv("LEDGER_ENGINE_GIT_DESCRIBE", " v0.1.0-3-gabc ")
    try:
        assert git_describe() == "v0.1.0-3-gabc"
    finally:
        git_describe.cache_clear()
