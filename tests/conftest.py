"""Shared test configuration."""

from __future__ import annotations

import pytest

from shipwright.adapters.memory import InMemoryTaskStore
from shipwright.agents.mocks import RecordingSink
from shipwright.memory import InMemoryMemory


def pytest_addoption(parser):
    parser.addoption(
        "--run-slow", action="store_true", default=False, help="Run slow tests that call Claude"
    )


def pytest_collection_modifyitems(config, items):
    if config.getoption("--run-slow"):
        return
    skip_slow = pytest.mark.skip(reason="Need --run-slow to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


@pytest.fixture
def store():
    return InMemoryTaskStore()


@pytest.fixture
def memory():
    return InMemoryMemory()


@pytest.fixture
def sink():
    return RecordingSink()
