import os
from pathlib import Path

import pytest
from hypothesis import HealthCheck, settings

from engine.config import load_config as load_engine_config
from engine.executor import TransactionExecutor
from testkit.config import load_config as load_harness_config
from testkit.env import TestEnv
from testkit.logging import bind, setup_logging, unbind

ASSETS = Path(__file__).resolve().parent / "testkit" / "tests" / "assets"

# ---- hypothesis profiles ------------------------------------------------------
# Property tests build a fresh ledger per example, so budgets stay small locally.

settings.register_profile(
    "dev",
    settings(max_examples=25, deadline=None, suppress_health_check=(HealthCheck.too_slow,)),
)
settings.register_profile(
    "ci",
    settings(
        max_examples=100,
        deadline=None,
        derandomize=True,
        suppress_health_check=(HealthCheck.too_slow, HealthCheck.filter_too_much),
    ),
)
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "dev"))


def pytest_configure(config):
    setup_logging()


def pytest_runtest_setup(item):
    bind(test=item.name)


def pytest_runtest_teardown(item):
    unbind("test")


@pytest.fixture
def engine_config():
    # Built from an empty env so developer shells cannot change test results.
    return load_engine_config(env={})


@pytest.fixture
def harness_config():
    return load_harness_config(env={})


@pytest.fixture
def executor(engine_config):
    return TransactionExecutor(config=engine_config)


@pytest.fixture
def env(executor, harness_config):
    return TestEnv(executor, config=harness_config)


@pytest.fixture
def hello_path():
    return ASSETS / "hello_world"


@pytest.fixture
def treasury_path():
    return ASSETS / "treasury" / "treasury.py"


@pytest.fixture
def hello_env(env, hello_path):
    """admin + user registered, acting as admin, hello-world published."""
    env.create_user("admin")
    env.create_user("user")
    env.acting_as("admin")
    env.publish_package_from_path("hello-world", hello_path)
    return env
