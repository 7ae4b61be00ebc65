"""Active Timer Registry - single source of truth for each user's live timer"""

import logging
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional

from timetrack.features.timer.domain import TimerProjection, TimerRecord
from timetrack.features.timer.store import InMemoryTimerStore, TimerStore
from timetrack.services.clock import synced_now
from timetrack.utils.time_helper import elapsed_seconds, ms_to_datetime

logger = logging.getLogger(__name__)

_FLAG_FIELDS = ("is_running", "is_paused")


class ActiveTimerRegistry:
    """
    Pure state transitions over TimerRecord, one record per user.

    A record exists only while its timer is running or paused; stop and
    expiry remove it. Every timestamp comes from the injected `now`
    (authoritative epoch ms), never from client-submitted times.
    """

    def __init__(
        self,
        store: Optional[TimerStore] = None,
        now: Optional[Callable[[], float]] = None,
    ):
        self._store = store or InMemoryTimerStore()
        self._now = now or synced_now

    def _elapsed(self, record: TimerRecord) -> int:
        """Elapsed seconds since the anchor; frozen while paused"""
        if record.is_paused and record.paused_duration is not None:
            return record.paused_duration
        return elapsed_seconds(record.start_time, self._now())

    def start(
        self,
        user_id: str,
        topic_id: Optional[int] = None,
        description: Optional[str] = None,
        duration: Optional[int] = None,
        is_count_down: bool = False,
    ) -> TimerRecord:
        """
        Create the user's timer, silently replacing any existing one.

        Args:
            user_id: Owner of the timer
            topic_id: Optional topic the time is tracked against
            description: Optional free text
            duration: Countdown target in seconds (ignored for count-up)
            is_count_down: Count down from duration instead of counting up

        Returns:
            The stored TimerRecord
        """
        now = ms_to_datetime(self._now())
        record = TimerRecord(
            user_id=user_id,
            topic_id=topic_id,
            description=description,
            start_time=now,
            original_start_time=now,
            is_count_down=is_count_down,
            duration=duration,
            original_duration=duration,
            is_running=True,
            is_paused=False,
        )

        if self._store.get(user_id) is not None:
            logger.info(f"Replacing active timer for user {user_id}")

        self._store.put(record)
        logger.info(
            f"Timer started for user {user_id}: "
            f"{'countdown ' + str(duration) + 's' if is_count_down else 'count-up'}, topic {topic_id}"
        )
        return record

    def update(self, user_id: str, changes: Dict[str, Any]) -> Optional[TimerRecord]:
        """
        Shallow-merge changes into the user's timer.

        Handles the pause and resume transitions when the running/paused
        flags flip. Returns None (and changes nothing) if the user has no
        timer. An update that leaves the timer neither running nor paused
        removes it.
        """
        record = self._store.get(user_id)
        if record is None:
            return None

        # A null flag is treated as absent; the flags are never cleared
        changes = {
            field: value for field, value in changes.items()
            if not (field in _FLAG_FIELDS and value is None)
        }

        wants_pause = changes.get("is_paused") is True
        wants_resume = not wants_pause and (
            changes.get("is_running") is True or changes.get("is_paused") is False
        )

        updated = record.model_copy(update=changes)

        if wants_pause:
            if record.is_running and not record.is_paused:
                updated = self._pause(updated)
            updated.is_running = False
        elif wants_resume:
            if record.is_paused:
                updated = self._resume(updated)
            updated.is_running = True
            updated.is_paused = False

        if not updated.is_running and not updated.is_paused:
            self._store.delete(user_id)
            logger.info(f"Timer for user {user_id} neither running nor paused, removed")
            return None

        self._store.put(updated)
        return updated

    def _pause(self, record: TimerRecord) -> TimerRecord:
        elapsed = elapsed_seconds(record.start_time, self._now())
        remaining = None
        if record.is_count_down:
            remaining = max(0, (record.duration or 0) - elapsed)

        logger.info(f"Timer paused for user {record.user_id} after {elapsed}s, remaining {remaining}")
        return record.model_copy(update={
            "is_running": False,
            "is_paused": True,
            "paused_duration": elapsed,
            "remaining_seconds": remaining,
        })

    def _resume(self, record: TimerRecord) -> TimerRecord:
        # Re-anchor on every resume so repeated pause/resume cycles never
        # re-derive elapsed time from a stale start_time.
        now = ms_to_datetime(self._now())
        if record.is_count_down:
            start_time = now
            duration = record.remaining_seconds or 0
        else:
            start_time = now - timedelta(seconds=record.paused_duration or 0)
            duration = record.duration

        logger.info(f"Timer resumed for user {record.user_id}")
        return record.model_copy(update={
            "is_running": True,
            "is_paused": False,
            "start_time": start_time,
            "duration": duration,
            "paused_duration": None,
            "remaining_seconds": None,
        })

    def stop(self, user_id: str) -> bool:
        """Remove the user's timer. Stopping an absent timer is not an error."""
        removed = self._store.delete(user_id)
        if removed:
            logger.info(f"Timer stopped for user {user_id}")
        return removed

    def project(self, record: TimerRecord) -> TimerProjection:
        elapsed = self._elapsed(record)
        remaining = None
        if record.is_count_down:
            remaining = max(0, (record.duration or 0) - elapsed)

        return TimerProjection(
            **record.model_dump(exclude={"remaining_seconds"}),
            elapsed_seconds=elapsed,
            remaining_seconds=remaining,
        )

    def with_elapsed(self, user_id: str) -> Optional[TimerProjection]:
        """Read-only projection of the user's timer, or None"""
        record = self._store.get(user_id)
        if record is None:
            return None
        return self.project(record)

    def is_valid(self, record: TimerRecord) -> bool:
        """Countdowns expire once elapsed reaches duration; count-up timers never do"""
        if not record.is_count_down:
            return True
        return self._elapsed(record) < (record.duration or 0)

    def sweep_expired(self) -> List[str]:
        """
        Delete every record that is no longer valid.

        Returns:
            User IDs whose timers were removed
        """
        expired = [record.user_id for record in self._store.all() if not self.is_valid(record)]
        for user_id in expired:
            self._store.delete(user_id)
            logger.info(f"Expired timer removed for user {user_id}")
        return expired

    def active_timers(self) -> List[TimerProjection]:
        """Projections of every live timer"""
        return [self.project(record) for record in self._store.all()]


_timer_registry: Optional[ActiveTimerRegistry] = None


def get_timer_registry() -> ActiveTimerRegistry:
    """Get or create the process-wide registry (FastAPI dependency)"""
    global _timer_registry

    if _timer_registry is None:
        _timer_registry = ActiveTimerRegistry()

    return _timer_registry
