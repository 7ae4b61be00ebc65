"""HTTP client for the timer and time entry endpoints"""

from typing import Any, Dict, Optional

import httpx

from timetrack.client.completion import TimeEntryDraft
from timetrack.features.timer.domain import TimerProjection


class TimerApiClient:
    """
    Thin async wrapper over the /api/timer and /api/time-entries routes.

    Every method raises httpx.HTTPError (including HTTPStatusError for
    non-2xx responses) on failure; callers decide how to recover.
    """

    def __init__(
        self,
        base_url: str = "",
        token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._client = client or httpx.AsyncClient(base_url=base_url)
        self._owns_client = client is None
        self._headers = {"Authorization": f"Bearer {token}"} if token else {}

    async def _request(self, method: str, url: str, json: Optional[Dict[str, Any]] = None) -> Any:
        response = await self._client.request(method, url, json=json, headers=self._headers)
        response.raise_for_status()
        return response.json()

    @staticmethod
    def _projection(data: Any) -> Optional[TimerProjection]:
        if data is None:
            return None
        return TimerProjection.model_validate(data)

    async def get_active(self) -> Optional[TimerProjection]:
        return self._projection(await self._request("GET", "/api/timer/active"))

    async def start(
        self,
        topic_id: Optional[int] = None,
        description: Optional[str] = None,
        duration: Optional[int] = None,
        is_count_down: bool = False,
    ) -> TimerProjection:
        data = await self._request("POST", "/api/timer/start", json={
            "topic_id": topic_id,
            "description": description,
            "duration": duration,
            "is_count_down": is_count_down,
        })
        return TimerProjection.model_validate(data)

    async def update(self, **changes: Any) -> Optional[TimerProjection]:
        """PATCH the timer with is_running / is_paused / description / topic_id"""
        return self._projection(await self._request("PATCH", "/api/timer/update", json=changes))

    async def stop(self) -> bool:
        data = await self._request("POST", "/api/timer/stop")
        return bool(data.get("success"))

    async def create_time_entry(self, draft: TimeEntryDraft) -> Dict[str, Any]:
        return await self._request("POST", "/api/time-entries", json=draft.model_dump(mode="json"))

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()
