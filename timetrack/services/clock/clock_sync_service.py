"""Clock Sync Service - keeps an offset between the local clock and external time authorities"""
import asyncio
import logging
import time
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Dict, List, Optional

import httpx

from timetrack.config import (
    CLOCK_PROBE_TIMEOUT_SECONDS,
    CLOCK_RESYNC_INTERVAL_SECONDS,
    TIME_AUTHORITIES,
)
from timetrack.utils.time_helper import datetime_to_ms, ms_to_datetime

logger = logging.getLogger(__name__)

USER_AGENT = "TimeTrack/1.0"


def _monotonic_wall_clock() -> Callable[[], float]:
    """
    Build a wall clock (epoch ms) that can never run backwards.

    Wall time is read once and then advanced with time.monotonic(), so an OS
    clock adjustment after startup does not make timers jump.
    """
    wall_anchor = time.time() * 1000
    mono_anchor = time.monotonic()

    def now() -> float:
        return wall_anchor + (time.monotonic() - mono_anchor) * 1000

    return now


class ClockSyncService:
    """
    Estimates the offset between the local clock and a list of HTTP time
    authorities and exposes a synchronized "now".

    synced_now() is synchronous and never blocks; resync() runs in the
    background and only ever replaces the offset after a successful probe.
    """

    def __init__(
        self,
        authorities: Optional[List[str]] = None,
        resync_interval: float = CLOCK_RESYNC_INTERVAL_SECONDS,
        probe_timeout: float = CLOCK_PROBE_TIMEOUT_SECONDS,
        local_clock: Optional[Callable[[], float]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.authorities = list(TIME_AUTHORITIES if authorities is None else authorities)
        self.resync_interval = resync_interval
        self.probe_timeout = probe_timeout
        self._local_clock = local_clock or _monotonic_wall_clock()
        self._transport = transport

        self._offset_ms: float = 0.0
        self._last_sync_ms: Optional[float] = None
        self._synced_authority: Optional[str] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def offset_ms(self) -> float:
        return self._offset_ms

    @property
    def last_sync_ms(self) -> Optional[float]:
        return self._last_sync_ms

    def local_now(self) -> float:
        """Local time in epoch milliseconds"""
        return self._local_clock()

    def synced_now(self) -> float:
        """Authoritative now in epoch milliseconds (local time + offset)"""
        return self.local_now() + self._offset_ms

    def synced_datetime(self) -> datetime:
        """Authoritative now as an aware UTC datetime"""
        return ms_to_datetime(self.synced_now())

    def is_synced(self) -> bool:
        """True if a probe succeeded within the last resync interval"""
        if self._last_sync_ms is None:
            return False
        return self.local_now() - self._last_sync_ms < self.resync_interval * 1000

    def status(self) -> Dict[str, Any]:
        return {
            "offset_ms": round(self._offset_ms, 3),
            "synced": self.is_synced(),
            "authority": self._synced_authority,
            "last_sync": ms_to_datetime(self._last_sync_ms).isoformat() if self._last_sync_ms else None,
            "now": self.synced_datetime().isoformat(),
        }

    async def _probe(self, client: httpx.AsyncClient, authority: str) -> float:
        """
        Query one authority and return the estimated offset in milliseconds.

        The authority's Date header is assumed to describe the midpoint of
        the round trip.

        Raises:
            httpx.HTTPError: If the request fails
            ValueError: If the response carries no usable Date header
        """
        sent_at = self.local_now()
        response = await client.head(authority, headers={"User-Agent": USER_AGENT})
        received_at = self.local_now()

        date_header = response.headers.get("date")
        if not date_header:
            raise ValueError(f"No Date header in response from {authority}")

        try:
            authority_ms = datetime_to_ms(parsedate_to_datetime(date_header))
        except (TypeError, ValueError) as e:
            raise ValueError(f"Unparseable Date header from {authority}: {date_header!r}") from e

        midpoint = sent_at + (received_at - sent_at) / 2
        return authority_ms - midpoint

    async def resync(self) -> bool:
        """
        Probe authorities in order and keep the first successful offset.

        Returns:
            True if the offset was updated, False if every authority failed
        """
        async with httpx.AsyncClient(
            timeout=self.probe_timeout,
            transport=self._transport,
            follow_redirects=True,
        ) as client:
            for authority in self.authorities:
                try:
                    offset = await self._probe(client, authority)
                except (httpx.HTTPError, ValueError) as e:
                    logger.warning(f"Clock sync failed with {authority}: {e}")
                    continue

                self._offset_ms = offset
                self._last_sync_ms = self.local_now()
                self._synced_authority = authority
                logger.info(f"Clock sync successful with {authority}, offset: {offset:.0f}ms")
                return True

        logger.warning(f"All time authorities failed, keeping offset {self._offset_ms:.0f}ms")
        return False

    async def run_forever(self):
        """Resync immediately, then on every interval until cancelled"""
        while True:
            try:
                await self.resync()
            except Exception as e:
                logger.error(f"Unexpected clock sync error: {e}", exc_info=True)
            await asyncio.sleep(self.resync_interval)

    def start(self) -> asyncio.Task:
        """Launch the background resync loop (idempotent)"""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_forever())
        return self._task

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None


_clock_sync_service: Optional[ClockSyncService] = None


def get_clock_sync_service() -> ClockSyncService:
    """Get or create the process-wide clock sync service"""
    global _clock_sync_service

    if _clock_sync_service is None:
        _clock_sync_service = ClockSyncService()

    return _clock_sync_service


def reset_clock_sync_service():
    """Reset the clock sync singleton (useful for testing)"""
    global _clock_sync_service
    _clock_sync_service = None


def synced_now() -> float:
    """Authoritative now in epoch milliseconds from the process-wide service"""
    return get_clock_sync_service().synced_now()
