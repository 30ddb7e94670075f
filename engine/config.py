"""
engine.config: runtime configuration for the reference ledger.

This module centralizes knobs for:
  • Account bootstrap (faucet amount credited to every new account)
  • Package limits and static validation strictness
  • Signing domain (network id) and deterministic key derivation seed

Configuration may be provided via environment variables. Safe defaults are chosen so a
local test run works out of the box.

Environment variables (all optional):
  LEDGER_ENGINE_NETWORK          -> network id mixed into signing payloads (default: simulator)
  LEDGER_ENGINE_FAUCET_AMOUNT    -> decimal string credited to new accounts (default: 1000000)
  LEDGER_ENGINE_MAX_CODE_BYTES   -> e.g. "64KiB", "65536" (default: 64KiB)
  LEDGER_ENGINE_STRICT           -> 0/1/true/false, static checks on package source (default: 1)
  LEDGER_ENGINE_KEY_SEED         -> seed for deterministic key pairs (default: ledger-engine)

Programmatic usage:
    from engine.config import get_config
    cfg = get_config()
    if cfg.strict_packages:
        ...
"""

from __future__ import annotations

import os
import re
from dataclasses import asdict, dataclass
from decimal import Decimal
from functools import lru_cache
from typing import Dict, Mapping, Optional, Union

from .numeric import to_decimal

# ----------------------------- helpers -------------------------------------


_BOOL_TRUE = {"1", "true", "t", "yes", "y", "on"}
_BOOL_FALSE = {"0", "false", "f", "no", "n", "off"}


def _bool_env(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    v = value.strip().lower()
    if v in _BOOL_TRUE:
        return True
    if v in _BOOL_FALSE:
        return False
    return bool(v) if v != "" else default


_SIZE_RE = re.compile(r"^\s*(\d+)\s*([kKmM]i?[bB]|[bB])?\s*$")

_SIZE_UNITS = {
    "b": 1,
    "kb": 1000,
    "kib": 1024,
    "mb": 1000**2,
    "mib": 1024**2,
}


def _parse_size_bytes(s: Union[str, int]) -> int:
    """
    Parse human-friendly byte sizes:
      "64KiB", "64KB", "1MiB", "65536", 65536 -> bytes (int)
    """
    if isinstance(s, int):
        if s < 0:
            raise ValueError("size must be non-negative")
        return s

    m = _SIZE_RE.match(str(s))
    if not m:
        raise ValueError(f"invalid size: {s!r}")
    unit = (m.group(2) or "B").lower()
    if unit not in _SIZE_UNITS:
        raise ValueError(f"unknown size unit: {unit}")
    return int(m.group(1)) * _SIZE_UNITS[unit]


# ------------------------------ dataclass -----------------------------------


@dataclass(frozen=True)
class EngineConfig:
    network: str = "simulator"
    faucet_amount: Decimal = Decimal("1000000")
    max_code_bytes: int = 64 * 1024
    strict_packages: bool = True
    key_seed: str = "ledger-engine"

    def to_dict(self) -> Dict[str, object]:
        d = asdict(self)
        d["faucet_amount"] = str(self.faucet_amount)
        return d


def _validate(cfg: EngineConfig) -> EngineConfig:
    if not cfg.network:
        raise ValueError("network must be non-empty")
    if cfg.faucet_amount < 0:
        raise ValueError("faucet_amount must be ≥ 0")
    if cfg.max_code_bytes <= 0:
        raise ValueError("max_code_bytes must be > 0")
    return cfg


# ------------------------------ loader --------------------------------------


def load_config(
    env: Optional[Mapping[str, str]] = None,
    *,
    overrides: Optional[Mapping[str, object]] = None,
) -> EngineConfig:
    """
    Build an EngineConfig from environment and optional overrides.

    Args:
        env: mapping to read variables from (default: os.environ)
        overrides: explicit field overrides keyed by EngineConfig field name;
          they win over environment values.
    """
    env = os.environ if env is None else env
    overrides = dict(overrides or {})

    def pick(key: str, var: str, default: object) -> object:
        if key in overrides:
            return overrides[key]
        return env.get(var, default)

    strict = overrides.get("strict_packages")
    cfg = EngineConfig(
        network=str(pick("network", "LEDGER_ENGINE_NETWORK", "simulator")),
        faucet_amount=to_decimal(pick("faucet_amount", "LEDGER_ENGINE_FAUCET_AMOUNT", "1000000")),
        max_code_bytes=_parse_size_bytes(pick("max_code_bytes", "LEDGER_ENGINE_MAX_CODE_BYTES", 64 * 1024)),
        strict_packages=(
            bool(strict) if strict is not None else _bool_env(env.get("LEDGER_ENGINE_STRICT"), True)
        ),
        key_seed=str(pick("key_seed", "LEDGER_ENGINE_KEY_SEED", "ledger-engine")),
    )
    return _validate(cfg)


@lru_cache(maxsize=1)
def get_config() -> EngineConfig:
    """Cached global config."""
    return load_config()


def summary(cfg: Optional[EngineConfig] = None) -> str:
    """Return a one-line summary of the engine knobs."""
    cfg = cfg or get_config()
    return (
        "engine{"
        f"net={cfg.network}, faucet={cfg.faucet_amount}, "
        f"code={cfg.max_code_bytes}B, strict={int(cfg.strict_packages)}"
        "}"
    )


__all__ = ["EngineConfig", "load_config", "get_config", "summary"]
