"""Pytest configuration"""

import pytest

from fakes import FakeLauncher, FakeWindowManager, MemoryStore
from wsmux.session.state import LocalState
from wsmux.telemetry import metrics
from wsmux.wm.marks import WindowTracker


@pytest.fixture(autouse=True)
def reset_metrics():
    """Counters are process-global; start every test from zero"""
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def wm():
    return FakeWindowManager(workspaces=(1, 2), focused=1)


@pytest.fixture
def tracker(wm):
    return WindowTracker(wm, sleep=lambda _: None)


@pytest.fixture
def launcher(wm):
    return FakeLauncher(wm)


@pytest.fixture
def state(tmp_path):
    return LocalState(tmp_path / "state.json")


@pytest.fixture
def store():
    return MemoryStore(host="user@devbox")
