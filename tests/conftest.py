import pytest

from forefront_realtime.server.config import ENV_OVERRIDES
from forefront_realtime.server.events import EventRegistry


@pytest.fixture
def registry():
    """A fresh registry per test."""
    return EventRegistry()


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Point FOREFRONT_HOME at a temp dir and drop env overrides."""
    home = tmp_path / "forefront"
    monkeypatch.setenv("FOREFRONT_HOME", str(home))
    for var_name in ENV_OVERRIDES:
        monkeypatch.delenv(var_name, raising=False)
    return home


class Recorder:
    """Callable subscriber that remembers what it received."""

    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def make_recorder():
    return Recorder
