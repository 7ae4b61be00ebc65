"""
Client Timer Reconciler

Ticks a timer locally at 1 Hz, polls the server projection and reconciles
the two, and turns "countdown reached zero" or "user stopped the timer" into
exactly one time entry through the CompletionCoordinator.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Callable, Optional, Set, Tuple

import httpx

from timetrack.client.api_client import TimerApiClient
from timetrack.client.completion import (
    CompletionCoordinator,
    CompletionLock,
    CompletionOutcome,
    TimeEntryDraft,
    TimeEntryWriter,
)
from timetrack.client.snapshot import ClientTimerSnapshot, LockKey, SnapshotStorage
from timetrack.config import TIMER_PAUSED_SYNC_INTERVAL_SECONDS, TIMER_SYNC_INTERVAL_SECONDS
from timetrack.features.timer.domain import TimerProjection
from timetrack.utils.time_helper import elapsed_seconds, format_time, ms_to_datetime

logger = logging.getLogger(__name__)

TICK_INTERVAL_SECONDS = 1.0
# Subtracted from server elapsed time before comparing against the duration
LATENCY_BUFFER_SECONDS = 1
# Local seconds are only overwritten from the server beyond this drift
SYNC_TOLERANCE_SECONDS = 3

_PROJECTION_FIELDS = {
    "user_id",
    "topic_id",
    "description",
    "start_time",
    "original_start_time",
    "is_count_down",
    "duration",
    "original_duration",
    "is_running",
    "is_paused",
    "paused_duration",
    "remaining_seconds",
}


class TimerPhase(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"


def _wall_clock_ms() -> float:
    return time.time() * 1000


class TimerReconciler:
    """
    One mounted timer view.

    Several reconcilers may be alive at once against the same storage and
    server; they share a single CompletionLock so the time entry is written
    once. Until open() is called the instance is passive: nothing ticks or
    polls by itself and tick()/sync() can be driven directly.
    """

    def __init__(
        self,
        api: TimerApiClient,
        storage: SnapshotStorage,
        completion_lock: CompletionLock,
        time_entries: Optional[TimeEntryWriter] = None,
        clock: Optional[Callable[[], float]] = None,
        sync_interval: float = TIMER_SYNC_INTERVAL_SECONDS,
        paused_sync_interval: float = TIMER_PAUSED_SYNC_INTERVAL_SECONDS,
        notifier: Optional[Callable[[str, str], None]] = None,
    ):
        self._api = api
        self._storage = storage
        self._coordinator = CompletionCoordinator(completion_lock, time_entries or api)
        self._clock = clock or _wall_clock_ms
        self.sync_interval = sync_interval
        self.paused_sync_interval = paused_sync_interval
        self._notifier = notifier

        self._opened = False
        self._tick_task: Optional[asyncio.Task] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._background: Set[asyncio.Task] = set()
        self._pending_completion: Optional[Tuple[Optional[LockKey], Optional[TimeEntryDraft]]] = None
        self._mutations_in_flight = 0

        self.state = self._restore()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def _restore(self) -> ClientTimerSnapshot:
        snapshot = self._storage.load()
        if snapshot is None:
            return ClientTimerSnapshot()

        if snapshot.is_completed:
            # Written just before an unclean shutdown; processing it again
            # could record the same timer twice.
            logger.warning("Discarding completed timer snapshot from a previous session")
            self._storage.clear()
            if snapshot.lock_key is not None:
                self._coordinator.mark_handled(snapshot.lock_key)
            return ClientTimerSnapshot()

        if snapshot.is_running:
            snapshot.seconds = self._local_seconds(snapshot)
        logger.info(f"Restored timer state: {snapshot.seconds}s, running={snapshot.is_running}")
        return snapshot

    def _local_seconds(self, state: ClientTimerSnapshot) -> int:
        """Display seconds derived from the anchor and the local clock"""
        if state.start_time is None:
            return state.seconds
        elapsed = elapsed_seconds(state.start_time, self._clock())
        if state.is_count_down:
            return max(0, (state.duration or 0) - elapsed)
        return elapsed

    @property
    def phase(self) -> TimerPhase:
        if self.state.is_completed:
            return TimerPhase.COMPLETED
        if self.state.is_paused:
            return TimerPhase.PAUSED
        if self.state.is_running:
            return TimerPhase.RUNNING
        return TimerPhase.IDLE

    @property
    def seconds(self) -> int:
        return self.state.seconds

    @staticmethod
    def format_time(seconds: int) -> str:
        return format_time(seconds)

    def _persist(self):
        # A completed state is never written: a reload between "decided
        # completed" and "entry saved" must not re-arm a second completion.
        if self.state.is_completed:
            return
        self._storage.save(self.state)

    def _reset_to_idle(self, clear_storage: bool):
        self._stop_ticking()
        self.state = ClientTimerSnapshot()
        if clear_storage:
            self._storage.clear()

    def _rollback(self, previous: ClientTimerSnapshot):
        self.state = previous
        if previous.is_idle:
            self._storage.clear()
        else:
            self._persist()
        if self.phase is TimerPhase.RUNNING:
            self._start_ticking()
        else:
            self._stop_ticking()

    def _notify(self, title: str, message: str):
        logger.info(f"{title}: {message}")
        if self._notifier is not None:
            self._notifier(title, message)

    def _merge_projection(self, projection: TimerProjection):
        """Adopt the server's view of the timer, including display seconds"""
        update = projection.model_dump(include=_PROJECTION_FIELDS)
        update["is_completed"] = False

        if projection.is_count_down:
            seconds = projection.remaining_seconds or 0
        else:
            seconds = projection.elapsed_seconds
        update["seconds"] = max(0, seconds)

        self.state = self.state.model_copy(update=update)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def open(self) -> "TimerReconciler":
        """Start ticking (if running) and polling the server"""
        self._opened = True
        if self.phase is TimerPhase.RUNNING:
            self._start_ticking()
        if self._poll_task is None:
            self._poll_task = asyncio.create_task(self._poll_loop())
        return self

    async def close(self):
        self._opened = False
        self._stop_ticking()
        if self._poll_task is not None:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None
        await self.flush()

    async def __aenter__(self) -> "TimerReconciler":
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def flush(self):
        """Wait for scheduled completion work to finish"""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ------------------------------------------------------------------
    # Tick loop
    # ------------------------------------------------------------------

    def _start_ticking(self):
        if not self._opened:
            return
        if self._tick_task is None or self._tick_task.done():
            self._tick_task = asyncio.create_task(self._tick_loop())

    def _stop_ticking(self):
        task, self._tick_task = self._tick_task, None
        if task is not None and not task.done():
            task.cancel()

    async def _tick_loop(self):
        while True:
            await asyncio.sleep(TICK_INTERVAL_SECONDS)
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Timer tick failed: {e}", exc_info=True)

    def tick(self):
        """
        Advance the display by one second. Never suspends.

        Countdowns that reach zero, or that have no positive duration at all,
        complete here and cancel the tick loop before returning.
        """
        state = self.state
        if not state.is_running or state.is_paused or state.is_completed:
            return

        if state.is_count_down:
            if state.duration is None or state.duration <= 0:
                logger.warning("Countdown without a positive duration, completing it")
                self._complete()
                return

            state.seconds = max(0, state.seconds - 1)
            if state.seconds == 0:
                self._complete()
                return
        else:
            state.seconds += 1

        self._persist()

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def _build_draft(self, natural: bool) -> Optional[TimeEntryDraft]:
        state = self.state
        start = state.lifecycle_start
        if start is None or state.start_time is None:
            return None

        now_ms = self._clock()
        since_anchor = elapsed_seconds(state.start_time, now_ms)
        total = state.original_duration or 0

        if state.is_count_down:
            if total <= 0:
                duration = 0
            elif natural:
                duration = total
            else:
                remaining = max(0, (state.duration or 0) - since_anchor)
                duration = max(0, total - remaining)
        else:
            duration = since_anchor

        return TimeEntryDraft(
            topic_id=state.topic_id,
            description=state.description,
            start_time=start,
            end_time=ms_to_datetime(now_ms),
            duration=duration,
        )

    def _complete(self):
        """Enter Completed and schedule the terminal write"""
        self._stop_ticking()

        key = self.state.lock_key
        draft = self._build_draft(natural=True)
        self.state.seconds = 0
        self.state.is_running = False
        self.state.is_paused = False
        self.state.is_completed = True

        logger.info(f"Timer completed: {key}")
        self._pending_completion = (key, draft)
        self._spawn(self._finalize_completion(key, draft))

    async def _finalize_completion(
        self,
        key: Optional[LockKey],
        draft: Optional[TimeEntryDraft],
    ) -> CompletionOutcome:
        if key is None or draft is None:
            logger.warning("Completed timer has no start time, nothing to record")
            self._finish_completion(key, clear_storage=True)
            return CompletionOutcome.EMPTY

        outcome = await self._coordinator.finalize(key, draft)

        if outcome is CompletionOutcome.WRITTEN:
            self._finish_completion(key, clear_storage=True)
            self._notify("Timer finished", "Your time was saved.")
            try:
                await self._api.stop()
            except httpx.HTTPError as e:
                logger.debug(f"Clearing finished timer on server failed: {e}")
        elif outcome in (CompletionOutcome.EMPTY, CompletionOutcome.CONTENDED):
            self._finish_completion(key, clear_storage=True)
        elif outcome is CompletionOutcome.SKIPPED:
            # Whoever handled it owns the storage slot now
            self._finish_completion(key, clear_storage=False)
        # FAILED stays Completed; sync() retries

        return outcome

    def _finish_completion(self, key: Optional[LockKey], clear_storage: bool):
        if self._pending_completion is not None and self._pending_completion[0] == key:
            self._pending_completion = None
        # A new timer may have been started while the write was in flight
        if self.state.is_completed and self.state.lock_key == key:
            self._reset_to_idle(clear_storage=clear_storage)

    # ------------------------------------------------------------------
    # Server reconciliation
    # ------------------------------------------------------------------

    async def _poll_loop(self):
        while True:
            try:
                await self.sync()
            except Exception as e:
                logger.error(f"Timer sync failed: {e}", exc_info=True)
            interval = self.sync_interval if self.phase is TimerPhase.RUNNING else self.paused_sync_interval
            await asyncio.sleep(interval)

    async def sync(self):
        """Fetch the server projection and reconcile against it"""
        if self.phase is TimerPhase.COMPLETED:
            if self._pending_completion is not None:
                await self._finalize_completion(*self._pending_completion)
            return

        if self._mutations_in_flight:
            return

        try:
            projection = await self._api.get_active()
        except httpx.HTTPError as e:
            logger.debug(f"Fetching active timer failed: {e}")
            return

        if self._mutations_in_flight:
            return
        self.apply_server_projection(projection)

    def apply_server_projection(self, projection: Optional[TimerProjection]):
        state = self.state
        if state.is_completed:
            return

        if projection is None:
            local_remaining = min(state.seconds, self._local_seconds(state))
            if state.is_running and state.is_count_down and local_remaining <= SYNC_TOLERANCE_SECONDS:
                logger.info("Server no longer has the countdown, treating it as expired")
                self._complete()
            elif state.is_running or state.is_paused:
                logger.info("Timer no longer active on server, resetting")
                self._reset_to_idle(clear_storage=True)
            return

        same_timer = state.lock_key == (
            (projection.original_start_time.isoformat(), projection.topic_id)
        )
        flags_differ = (
            state.is_running != projection.is_running
            or state.is_paused != projection.is_paused
        )

        if projection.is_paused:
            # Nothing moves while paused, only flags and identity matter
            if flags_differ or not same_timer:
                self._stop_ticking()
                self._merge_projection(projection)
                self._persist()
            return

        elapsed = projection.elapsed_seconds
        adjusted = max(0, elapsed - LATENCY_BUFFER_SECONDS)
        completed = False
        if projection.is_count_down and projection.has_valid_duration():
            calculated = max(0, projection.duration - adjusted)
            completed = calculated == 0
        elif projection.is_count_down:
            calculated = 0
            completed = True
        else:
            calculated = elapsed

        if abs(state.seconds - calculated) > SYNC_TOLERANCE_SECONDS or flags_differ or not same_timer or completed:
            self._merge_projection(projection)
            self.state.seconds = calculated
            if completed:
                self._complete()
                return
            self._persist()

        self._start_ticking()

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    async def start(
        self,
        topic_id: Optional[int] = None,
        description: Optional[str] = None,
        duration: Optional[int] = None,
        is_count_down: bool = False,
    ) -> bool:
        """
        Start a new timer, replacing whatever this view was showing.

        Raises:
            ValueError: Countdown requested with a non-positive duration
        """
        if is_count_down and duration is not None and duration <= 0:
            raise ValueError("Countdown timer duration must be greater than 0")

        previous = self.state.model_copy()
        self._stop_ticking()
        self._coordinator.reset()
        self._pending_completion = None
        self._storage.clear()

        now = ms_to_datetime(self._clock())
        self.state = ClientTimerSnapshot(
            seconds=duration if is_count_down and duration else 0,
            is_running=True,
            is_count_down=is_count_down,
            topic_id=topic_id,
            description=description,
            start_time=now,
            original_start_time=now,
            duration=duration,
            original_duration=duration,
        )
        self._start_ticking()

        self._mutations_in_flight += 1
        try:
            projection = await self._api.start(
                topic_id=topic_id,
                description=description,
                duration=duration,
                is_count_down=is_count_down,
            )
        except httpx.HTTPError as e:
            logger.warning(f"Timer start failed: {e}")
            self._rollback(previous)
            self._notify("Timer not started", "The server could not be reached.")
            return False
        finally:
            self._mutations_in_flight -= 1

        self._merge_projection(projection)
        self._persist()
        self._start_ticking()
        return True

    async def pause(self) -> bool:
        if self.phase is not TimerPhase.RUNNING:
            return False

        previous = self.state.model_copy()
        self._stop_ticking()
        self.state.is_running = False
        self.state.is_paused = True
        self._persist()

        self._mutations_in_flight += 1
        try:
            projection = await self._api.update(is_running=False, is_paused=True)
        except httpx.HTTPError as e:
            logger.warning(f"Timer pause failed: {e}")
            self._rollback(previous)
            self._notify("Timer not paused", "The server could not be reached.")
            return False
        finally:
            self._mutations_in_flight -= 1

        if projection is not None:
            self._merge_projection(projection)
            self._persist()
        return True

    async def resume(self) -> bool:
        if self.phase is not TimerPhase.PAUSED:
            return False

        previous = self.state.model_copy()
        self.state.is_running = True
        self.state.is_paused = False
        self._persist()
        self._start_ticking()

        self._mutations_in_flight += 1
        try:
            projection = await self._api.update(is_running=True, is_paused=False)
        except httpx.HTTPError as e:
            logger.warning(f"Timer resume failed: {e}")
            self._rollback(previous)
            self._notify("Timer not resumed", "The server could not be reached.")
            return False
        finally:
            self._mutations_in_flight -= 1

        if projection is not None:
            self._merge_projection(projection)
            self._persist()
        return True

    async def stop(self) -> bool:
        """
        Stop the timer, recording the elapsed time if it was running.

        The entry goes through the same coordinator as natural completion.
        Stopping an idle or already completing timer is a no-op.
        """
        if self.phase in (TimerPhase.IDLE, TimerPhase.COMPLETED):
            return False

        previous = self.state.model_copy()
        self._stop_ticking()

        key = self.state.lock_key
        draft = None
        if self.state.is_running and not self.state.is_paused:
            draft = self._build_draft(natural=False)

        self.state = self.state.model_copy(update={
            "is_running": False,
            "is_paused": False,
            "is_completed": True,
            "seconds": 0,
        })

        written = False
        if key is not None and draft is not None:
            outcome = await self._coordinator.finalize(key, draft)
            if outcome is CompletionOutcome.FAILED:
                self._rollback(previous)
                self._notify("Timer not stopped", "Your time could not be saved, try again.")
                return False
            written = outcome is CompletionOutcome.WRITTEN

        self._mutations_in_flight += 1
        try:
            await self._api.stop()
        except httpx.HTTPError as e:
            logger.warning(f"Timer stop failed: {e}")
            if not written:
                self._rollback(previous)
                self._notify("Timer not stopped", "The server could not be reached.")
                return False
        finally:
            self._mutations_in_flight -= 1

        self._reset_to_idle(clear_storage=True)
        if written:
            self._notify("Timer stopped", "Your time was saved.")
        return True

    async def reset(self):
        """Drop the timer without recording anything"""
        self._pending_completion = None
        self._reset_to_idle(clear_storage=True)
        try:
            await self._api.stop()
        except httpx.HTTPError as e:
            logger.warning(f"Timer reset could not reach the server: {e}")
