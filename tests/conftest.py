"""Shared fixtures: a manual clock, an isolated registry and an in-process API client."""

import asyncio

import httpx
import pytest

from timetrack.client import (
    CompletionLock,
    MemorySnapshotStorage,
    TimerApiClient,
    TimerReconciler,
)
from timetrack.features.timer.registry import ActiveTimerRegistry, get_timer_registry
from timetrack.main import app
from timetrack.middleware.auth import get_current_user_id

USER_ID = "user-1"


class ManualClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, start_ms: float = 1_760_000_000_000.0):
        self.now_ms = start_ms

    def __call__(self) -> float:
        return self.now_ms

    def advance(self, seconds: float):
        self.now_ms += seconds * 1000


class RecordingWriter:
    """Stands in for the time entry API; counts every write."""

    def __init__(self, fail_times: int = 0):
        self.calls = []
        self.fail_times = fail_times
        self.gate = None  # optional asyncio.Event holding writes open

    async def create_time_entry(self, draft):
        await asyncio.sleep(0)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_times:
            self.fail_times -= 1
            raise RuntimeError("time entry service unavailable")
        self.calls.append(draft)
        return {"id": len(self.calls)}


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def registry(clock):
    return ActiveTimerRegistry(now=clock)


@pytest.fixture
def overridden_app(registry):
    app.dependency_overrides[get_current_user_id] = lambda: USER_ID
    app.dependency_overrides[get_timer_registry] = lambda: registry
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def http_client(overridden_app):
    transport = httpx.ASGITransport(app=overridden_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def api(http_client):
    return TimerApiClient(client=http_client)


@pytest.fixture
def storage():
    return MemorySnapshotStorage()


@pytest.fixture
def completion_lock():
    return CompletionLock()


@pytest.fixture
def writer():
    return RecordingWriter()


@pytest.fixture
def make_reconciler(api, storage, completion_lock, writer, clock):
    """Build reconcilers that share storage, lock, writer and clock by default."""

    def factory(**overrides) -> TimerReconciler:
        kwargs = {
            "api": api,
            "storage": storage,
            "completion_lock": completion_lock,
            "time_entries": writer,
            "clock": clock,
        }
        kwargs.update(overrides)
        return TimerReconciler(**kwargs)

    return factory
