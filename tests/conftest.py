"""Shared fixtures for the tabtime test suite."""

from __future__ import annotations

import datetime as dt
import logging

import pytest

from tabtime.classify.cache import ClassificationCache
from tabtime.core.store import MemorySnapshotStore
from tabtime.tracker import TabTracker, build_tracker


class FakeClock:
    """Manually advanced clock returning epoch seconds."""

    def __init__(self, start: float = 1_750_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDateTimeClock:
    """Manually advanced clock returning aware UTC datetimes."""

    def __init__(self, start: dt.datetime) -> None:
        self.now = start

    def __call__(self) -> dt.datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += dt.timedelta(**kwargs)


@pytest.fixture(autouse=True)
def _restore_root_handler_filters():
    """Undo filters tests attach to pytest's shared root log handlers."""
    saved = {h: list(h.filters) for h in logging.getLogger().handlers}
    yield
    for handler, filters in saved.items():
        handler.filters[:] = filters


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def now() -> dt.datetime:
    return dt.datetime(2025, 6, 15, 12, 0, tzinfo=dt.timezone.utc)


@pytest.fixture()
def dt_clock(now: dt.datetime) -> FakeDateTimeClock:
    return FakeDateTimeClock(now)


@pytest.fixture()
def store() -> MemorySnapshotStore:
    return MemorySnapshotStore()


@pytest.fixture()
def tracker(store: MemorySnapshotStore, dt_clock: FakeDateTimeClock, clock: FakeClock) -> TabTracker:
    return build_tracker(
        store=store,
        clock=dt_clock,
        cache=ClassificationCache(clock=clock),
    )
