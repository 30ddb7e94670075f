"""
engine.version: semantic version string and VCS describe helper.

Usage:
    from engine.version import __version__, git_describe
"""

from __future__ import annotations

import os
import subprocess
from functools import lru_cache

__version__ = "0.1.0"


@lru_cache(maxsize=1)
def git_describe() -> str:
    """
    Best-effort 'git describe' string: LEDGER_ENGINE_GIT_DESCRIBE if set, then
    `git describe --tags --dirty --always`, then ``<version>+local``.
    """
    override = os.getenv("LEDGER_ENGINE_GIT_DESCRIBE")
    if override:
        return override.strip()
    try:
        out = subprocess.check_output(
            ["git", "describe", "--tags", "--dirty", "--always"],
            stderr=subprocess.DEVNULL,
        )
    except (OSError, subprocess.CalledProcessError):
        return f"{__version__}+local"
    return out.decode("utf-8", "replace").strip() or f"{__version__}+local"


__all__ = ["__version__", "git_describe"]
