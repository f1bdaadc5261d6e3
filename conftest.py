"""Pytest configuration and fixtures for the DataMerge tests."""

from datetime import datetime, timedelta
from typing import Callable, List

import pytest

from datamerge.core.session_store import SessionStore
from datamerge.models.data_models import Dataset


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 9, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class ManualTimer:
    def __init__(self, due: datetime, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler whose timers fire only when the test advances time."""

    def __init__(self, clock: ManualClock):
        self.clock = clock
        self.timers: List[ManualTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self.clock() + timedelta(seconds=delay), callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> List[ManualTimer]:
        return [timer for timer in self.timers if not timer.cancelled]

    def advance(self, **kwargs) -> None:
        """Move the clock forward, firing every timer that falls due on the way."""
        target = self.clock() + timedelta(**kwargs)
        while True:
            due = [timer for timer in self.pending if timer.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self.clock.now = max(self.clock.now, timer.due)
            self.timers.remove(timer)
            timer.callback()
        self.clock.now = target

    def fire_all(self) -> None:
        """Fire every pending timer now, whether it is due or not."""
        for timer in list(self.pending):
            self.timers.remove(timer)
            timer.callback()


class LeakyScheduler(ManualScheduler):
    """Scheduler whose cancel() comes too late: cancelled timers still fire."""

    @property
    def pending(self) -> List[ManualTimer]:
        return list(self.timers)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def scheduler(clock) -> ManualScheduler:
    return ManualScheduler(clock)


@pytest.fixture
def store(clock, scheduler) -> SessionStore:
    """Session store driven entirely by the manual clock and scheduler."""
    return SessionStore(clock=clock, scheduler=scheduler)


@pytest.fixture
def dataset_a() -> Dataset:
    return Dataset(
        original_name="customers_2023.csv",
        columns=["Code", "Name", "Amount", "City"],
        records=[
            {"Code": "A1", "Name": "Acme", "Amount": 10, "City": "Berlin"},
            {"Code": "B2", "Name": "Beta", "Amount": "5", "City": "Paris"},
            {"Code": "C3", "Name": "Gamma", "Amount": 7.5, "City": None},
            {"Code": "X9", "Name": "Xenon", "Amount": "n/a", "City": "Rome"},
        ],
    )


@pytest.fixture
def dataset_b() -> Dataset:
    return Dataset(
        original_name="customers_2024.csv",
        columns=["Code", "Name", "Amount", "Country"],
        records=[
            {"Code": " a1 ", "Name": "Acme Corp", "Amount": 2.5, "Country": "DE"},
            {"Code": "D4", "Name": "Delta", "Amount": 1, "Country": "FR"},
            {"Code": "c3", "Name": "Gamma", "Amount": "2.5", "Country": None},
        ],
    )


@pytest.fixture
def test_client(store):
    """Test client for the FastAPI application, bound to the manual session store."""
    from fastapi.testclient import TestClient
    from datamerge.main import app, get_store

    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()
