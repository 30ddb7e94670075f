"""
Nox sessions for the ledger testkit.

Sessions:
  - unit : engine + harness tests on the supported Pythons
  - prop : hypothesis property tests only, with more examples

Pass extra args to pytest like:
  nox -s unit -- -k "transfer and not hypothesis" -vv
"""

from __future__ import annotations

from pathlib import Path

import nox

nox.options.reuse_venv = True
nox.options.stop_on_first_error = False

REPO_ROOT = Path(__file__).resolve().parent
TEST_PYTHONS = ["3.10", "3.11", "3.12"]


def _install(session: nox.Session) -> None:
    session.install("-e", f"{REPO_ROOT}[test]")
    session.env.setdefault("PYTHONUNBUFFERED", "1")
    session.env.setdefault("TESTKIT_LOG_LEVEL", "WARNING")


@nox.session(python=TEST_PYTHONS)
def unit(session: nox.Session) -> None:
    """Fast unit tests."""
    _install(session)
    session.run("pytest", "-q", *session.posargs)


@nox.session(python="3.11")
def prop(session: nox.Session) -> None:
    """Property tests with a larger example budget."""
    _install(session)
    session.env["HYPOTHESIS_PROFILE"] = "ci"
    session.run("pytest", "-q", "testkit/tests/test_conservation.py", "testkit/tests/test_registry.py", *session.posargs)
