"""
testkit.config: harness behaviour knobs.

  • Default selection policy for the current user / current package
  • What to do when a user name is registered twice
  • How vaults holding the same resource are aggregated by the walker

Environment variables (all optional):
  TESTKIT_SELECTION_POLICY   -> first|last (default: first)
  TESTKIT_ON_DUPLICATE_USER  -> overwrite|error (default: overwrite)
  TESTKIT_DUPLICATE_VAULTS   -> last|sum (default: last)

Programmatic usage:
    from testkit.config import load_config
    cfg = load_config(overrides={"selection_policy": "last"})
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Dict, Mapping, Optional


class SelectionPolicy(str, Enum):
    """Which registration becomes "current" when nothing was chosen explicitly."""

    FIRST_WRITE_WINS = "first"
    LAST_WRITE_WINS = "last"

    @classmethod
    def from_str(cls, s: str) -> "SelectionPolicy":
        norm = str(s).strip().lower().replace("-", "_")
        aliases = {
            "first": cls.FIRST_WRITE_WINS,
            "first_write_wins": cls.FIRST_WRITE_WINS,
            "last": cls.LAST_WRITE_WINS,
            "last_write_wins": cls.LAST_WRITE_WINS,
        }
        if norm not in aliases:
            raise ValueError(f"unknown selection policy: {s!r}")
        return aliases[norm]


DUPLICATE_USER_MODES = ("overwrite", "error")
DUPLICATE_VAULT_MODES = ("last", "sum")


@dataclass(frozen=True)
class HarnessConfig:
    selection_policy: SelectionPolicy = SelectionPolicy.FIRST_WRITE_WINS
    on_duplicate_user: str = "overwrite"
    duplicate_vaults: str = "last"

    def to_dict(self) -> Dict[str, str]:
        return {
            "selection_policy": self.selection_policy.value,
            "on_duplicate_user": self.on_duplicate_user,
            "duplicate_vaults": self.duplicate_vaults,
        }


def _validate(cfg: HarnessConfig) -> HarnessConfig:
    if cfg.on_duplicate_user not in DUPLICATE_USER_MODES:
        raise ValueError(f"on_duplicate_user must be one of {DUPLICATE_USER_MODES}")
    if cfg.duplicate_vaults not in DUPLICATE_VAULT_MODES:
        raise ValueError(f"duplicate_vaults must be one of {DUPLICATE_VAULT_MODES}")
    return cfg


def load_config(
    env: Optional[Mapping[str, str]] = None,
    *,
    overrides: Optional[Mapping[str, object]] = None,
) -> HarnessConfig:
    """Build a HarnessConfig from `env` (default: os.environ); `overrides` win."""
    env = os.environ if env is None else env
    overrides = dict(overrides or {})

    def pick(key: str, var: str, default: str) -> str:
        if key in overrides:
            return str(getattr(overrides[key], "value", overrides[key]))
        return env.get(var, default)

    cfg = HarnessConfig(
        selection_policy=SelectionPolicy.from_str(pick("selection_policy", "TESTKIT_SELECTION_POLICY", "first")),
        on_duplicate_user=pick("on_duplicate_user", "TESTKIT_ON_DUPLICATE_USER", "overwrite").strip().lower(),
        duplicate_vaults=pick("duplicate_vaults", "TESTKIT_DUPLICATE_VAULTS", "last").strip().lower(),
    )
    return _validate(cfg)


@lru_cache(maxsize=1)
def get_config() -> HarnessConfig:
    """Cached global config."""
    return load_config()


def summary(cfg: Optional[HarnessConfig] = None) -> str:
    cfg = cfg or get_config()
    return (
        "testkit{"
        f"select={cfg.selection_policy.value}, dup_user={cfg.on_duplicate_user}, "
        f"dup_vaults={cfg.duplicate_vaults}"
        "}"
    )


__all__ = ["SelectionPolicy", "HarnessConfig", "load_config", "get_config", "summary"]
