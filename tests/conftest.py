import os
from datetime import datetime, timedelta

import pytest

from activity_tracker import config
from activity_tracker.kvstore import KeyValueStore
from activity_tracker.storage.memory import MemoryBackend


SEED = [
    {
        "title": "Work",
        "color": "hsl(15, 100%, 70%)",
        "timeframes": {
            "daily": {"current": 2, "previous": 3},
            "weekly": {"current": 20, "previous": 30},
            "monthly": {"current": 100, "previous": 120},
        },
    },
    {
        "title": "Study",
        "color": "hsl(348, 100%, 68%)",
        "timeframes": {
            "daily": {"current": 1, "previous": 0},
            "weekly": {"current": 5, "previous": 4},
            "monthly": {"current": 10, "previous": 8},
        },
    },
]


class FakeClock:
    """Settable wall clock returning naive local datetimes."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class MsClock:
    """Settable epoch-milliseconds clock for timers."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.current = start

    def __call__(self) -> int:
        return self.current

    def advance(self, ms: int) -> None:
        self.current += ms


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point every setting at a temp dir and reload config between tests."""
    for name in list(os.environ):
        if name.startswith("ACTIVITY_TRACKER_"):
            monkeypatch.delenv(name)
    monkeypatch.setenv("ACTIVITY_TRACKER_DIR", str(tmp_path))
    config.reload()
    yield
    monkeypatch.undo()
    config.reload()


@pytest.fixture
async def store(tmp_path):
    kv = KeyValueStore(str(tmp_path / "tracker.db"))
    await kv.connect()
    yield kv
    await kv.close()


@pytest.fixture
def backend():
    return MemoryBackend()


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 15, 10, 0, 0))


@pytest.fixture
def ms_clock():
    return MsClock()


@pytest.fixture
def seed_loader():
    import copy

    return lambda: copy.deepcopy(SEED)
