"""API tests for the timer, time entry and health routes"""

from datetime import datetime, timezone

import httpx
import pytest

from timetrack.features.time_entries.api import get_time_entry_repository
from timetrack.middleware.auth import get_current_user_id
from timetrack.models.time_entry import TimeEntry
from timetrack.services.clock import ClockSyncService, get_clock_sync_service

from conftest import USER_ID


class FakeTimeEntryRepository:
    def __init__(self, fail: bool = False):
        self.created = []
        self.fail = fail

    async def create(self, data):
        if self.fail:
            raise RuntimeError("database unavailable")
        self.created.append(data)
        return TimeEntry(
            id=len(self.created),
            created_at=datetime.now(timezone.utc),
            **data.model_dump(),
        )


@pytest.fixture
def repo(overridden_app):
    fake = FakeTimeEntryRepository()
    overridden_app.dependency_overrides[get_time_entry_repository] = lambda: fake
    return fake


class TestTimerRoutes:
    async def test_no_active_timer(self, http_client):
        response = await http_client.get("/api/timer/active")
        assert response.status_code == 200
        assert response.json() is None

    async def test_start_countdown(self, http_client, registry):
        response = await http_client.post("/api/timer/start", json={
            "topic_id": 5,
            "description": "deep work",
            "duration": 1500,
            "is_count_down": True,
        })

        assert response.status_code == 200
        body = response.json()
        assert body["user_id"] == USER_ID
        assert body["is_running"] is True
        assert body["is_paused"] is False
        assert body["remaining_seconds"] == 1500
        assert body["elapsed_seconds"] == 0
        assert body["original_duration"] == 1500
        assert registry.with_elapsed(USER_ID).topic_id == 5

    @pytest.mark.parametrize("duration", [0, -5])
    async def test_start_rejects_non_positive_countdown(self, http_client, registry, duration):
        response = await http_client.post("/api/timer/start", json={
            "duration": duration,
            "is_count_down": True,
        })

        assert response.status_code == 400
        assert registry.with_elapsed(USER_ID) is None

    async def test_start_count_up_ignores_duration(self, http_client):
        response = await http_client.post("/api/timer/start", json={"duration": 0})
        assert response.status_code == 200
        assert response.json()["remaining_seconds"] is None

    async def test_active_reports_elapsed(self, http_client, clock):
        await http_client.post("/api/timer/start", json={"topic_id": 1})
        clock.advance(42)

        body = (await http_client.get("/api/timer/active")).json()
        assert body["elapsed_seconds"] == 42

    async def test_pause_and_resume(self, http_client, clock):
        await http_client.post("/api/timer/start", json={"duration": 100, "is_count_down": True})
        clock.advance(10)

        paused = (await http_client.patch("/api/timer/update", json={
            "is_running": False,
            "is_paused": True,
        })).json()
        assert paused["is_paused"] is True
        assert paused["remaining_seconds"] == 90

        clock.advance(300)
        resumed = (await http_client.patch("/api/timer/update", json={
            "is_running": True,
            "is_paused": False,
        })).json()
        assert resumed["is_running"] is True
        assert resumed["remaining_seconds"] == 90
        assert resumed["duration"] == 90

    async def test_update_without_timer_returns_null(self, http_client):
        response = await http_client.patch("/api/timer/update", json={"description": "x"})
        assert response.status_code == 200
        assert response.json() is None

    async def test_update_only_sent_fields(self, http_client):
        await http_client.post("/api/timer/start", json={"topic_id": 3, "description": "a"})

        body = (await http_client.patch("/api/timer/update", json={"description": "b"})).json()

        assert body["description"] == "b"
        assert body["topic_id"] == 3
        assert body["is_running"] is True

    async def test_description_edit_keeps_paused_timer(self, http_client, registry):
        await http_client.post("/api/timer/start", json={})
        await http_client.patch("/api/timer/update", json={"is_running": False, "is_paused": True})

        response = await http_client.patch("/api/timer/update", json={
            "description": "notes",
            "is_paused": None,
        })

        assert response.status_code == 200
        body = response.json()
        assert body["description"] == "notes"
        assert body["is_paused"] is True
        assert registry.with_elapsed(USER_ID).is_paused

    async def test_stop_is_idempotent(self, http_client):
        await http_client.post("/api/timer/start", json={})

        first = await http_client.post("/api/timer/stop")
        second = await http_client.post("/api/timer/stop")

        assert first.json() == {"success": True}
        assert second.json() == {"success": True}
        assert (await http_client.get("/api/timer/active")).json() is None

    async def test_expired_countdown_reads_as_null(self, http_client, clock, registry):
        await http_client.post("/api/timer/start", json={"duration": 3, "is_count_down": True})
        clock.advance(3)

        assert (await http_client.get("/api/timer/active")).json() is None
        assert registry.active_timers() == []

    async def test_requires_authentication(self, http_client, overridden_app):
        del overridden_app.dependency_overrides[get_current_user_id]

        response = await http_client.get("/api/timer/active")
        assert response.status_code == 401


class TestTimeEntryRoutes:
    async def test_create_entry(self, http_client, repo):
        response = await http_client.post("/api/time-entries", json={
            "topic_id": 2,
            "description": "review",
            "start_time": "2025-10-09T08:00:00Z",
            "end_time": "2025-10-09T08:25:00Z",
            "duration": 1500,
        })

        assert response.status_code == 200
        assert response.json()["duration"] == 1500
        assert repo.created[0].user_id == USER_ID

    async def test_rejects_empty_duration(self, http_client, repo):
        response = await http_client.post("/api/time-entries", json={
            "start_time": "2025-10-09T08:00:00Z",
            "end_time": "2025-10-09T08:00:00Z",
            "duration": 0,
        })

        assert response.status_code == 400
        assert repo.created == []

    async def test_rejects_end_before_start(self, http_client, repo):
        response = await http_client.post("/api/time-entries", json={
            "start_time": "2025-10-09T09:00:00Z",
            "end_time": "2025-10-09T08:00:00Z",
            "duration": 60,
        })
        assert response.status_code == 400

    async def test_storage_failure_is_500(self, http_client, overridden_app):
        overridden_app.dependency_overrides[get_time_entry_repository] = (
            lambda: FakeTimeEntryRepository(fail=True)
        )

        response = await http_client.post("/api/time-entries", json={
            "start_time": "2025-10-09T08:00:00Z",
            "end_time": "2025-10-09T08:01:00Z",
            "duration": 60,
        })
        assert response.status_code == 500


class TestHealthRoutes:
    async def test_clock_health(self, http_client, overridden_app, clock):
        service = ClockSyncService(
            authorities=[],
            local_clock=clock,
            transport=httpx.MockTransport(lambda request: httpx.Response(200)),
        )
        overridden_app.dependency_overrides[get_clock_sync_service] = lambda: service
        await http_client.post("/api/timer/start", json={})

        body = (await http_client.get("/api/health/clock")).json()

        assert body["status"] == "degraded"
        assert body["synced"] is False
        assert body["offset_ms"] == 0
        assert body["active_timers"] == 1

    async def test_basic_health(self, http_client):
        body = (await http_client.get("/api/health/")).json()
        assert body["status"] == "healthy"
