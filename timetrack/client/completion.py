"""
Completion deduplication.

A finished timer must produce at most one time entry per logical lifecycle,
no matter how many reconcilers race to record it. CompletionLock is the
process-wide half (one slot, one in-progress flag, a memory of finished
keys); CompletionCoordinator is the per-reconciler half (an "already
handled" marker). Both checks are non-blocking: losers return immediately.
"""

import logging
import threading
from collections import OrderedDict
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Protocol

from pydantic import BaseModel

from timetrack.client.snapshot import LockKey

logger = logging.getLogger(__name__)


class CompletionOutcome(str, Enum):
    """Result of one finalize attempt"""
    WRITTEN = "written"  # this attempt created the entry
    SKIPPED = "skipped"  # already handled here or elsewhere
    CONTENDED = "contended"  # another save held the slot; abandoned, not retried
    FAILED = "failed"  # the write raised; retryable
    EMPTY = "empty"  # nothing worth recording (under one second)


class TimeEntryDraft(BaseModel):
    """Payload for the terminal time entry of one timer"""
    topic_id: Optional[int] = None
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    duration: int


class TimeEntryWriter(Protocol):
    async def create_time_entry(self, draft: TimeEntryDraft) -> Any:
        ...


class CompletionLock:
    """
    Process-wide test-and-set lock shared by every reconciler.

    Construct one per process (or per test) and hand it to each reconciler.
    """

    def __init__(self, history_size: int = 256):
        self.locked_key: Optional[LockKey] = None
        self.save_in_progress = False
        self._finalized: "OrderedDict[LockKey, None]" = OrderedDict()
        self._history_size = history_size
        self._guard = threading.Lock()

    def is_finalized(self, key: LockKey) -> bool:
        return key in self._finalized

    def try_acquire(self, key: LockKey) -> bool:
        """Take the slot for key if it is free and key is not finished yet"""
        with self._guard:
            if self.locked_key is not None or self.save_in_progress:
                return False
            if key in self._finalized:
                return False
            self.locked_key = key
            self.save_in_progress = True
            return True

    def release(self, key: LockKey, succeeded: bool):
        """
        Free the slot. A successful key is remembered as finished so no
        later attempt in this process can write it again.
        """
        with self._guard:
            if self.locked_key != key:
                logger.warning(f"Completion lock release for {key} but held by {self.locked_key}")
                return
            self.locked_key = None
            self.save_in_progress = False
            if succeeded:
                self._finalized[key] = None
                while len(self._finalized) > self._history_size:
                    self._finalized.popitem(last=False)


class CompletionCoordinator:
    """Per-reconciler gate in front of the time entry write"""

    def __init__(self, lock: CompletionLock, writer: TimeEntryWriter):
        self.lock = lock
        self._writer = writer
        self.handled_key: Optional[LockKey] = None

    def mark_handled(self, key: LockKey):
        self.handled_key = key

    def reset(self):
        self.handled_key = None

    async def finalize(self, key: LockKey, draft: TimeEntryDraft) -> CompletionOutcome:
        """
        Write the time entry for key unless someone already has.

        Success and contention are final for the key on this coordinator.
        Only a failed write releases the global slot and clears the local
        marker so a later call may retry.
        """
        if self.handled_key == key:
            logger.debug(f"Completion for {key} already handled by this reconciler")
            return CompletionOutcome.SKIPPED

        if self.lock.is_finalized(key) or self.lock.locked_key == key:
            logger.debug(f"Completion for {key} handled by another reconciler")
            self.handled_key = key
            return CompletionOutcome.SKIPPED

        if draft.duration < 1:
            logger.info(f"Timer {key} ran for under a second, not recording it")
            self.handled_key = key
            return CompletionOutcome.EMPTY

        # Test and set in one synchronous step; no await until the slot is ours
        self.handled_key = key
        if not self.lock.try_acquire(key):
            logger.debug(f"Completion for {key} abandoned, another save is in progress")
            return CompletionOutcome.CONTENDED

        try:
            await self._writer.create_time_entry(draft)
        except Exception as e:
            logger.warning(f"Saving time entry for {key} failed: {e}")
            self.lock.release(key, succeeded=False)
            self.handled_key = None
            return CompletionOutcome.FAILED

        self.lock.release(key, succeeded=True)
        logger.info(f"Time entry saved for {key}: {draft.duration}s")
        return CompletionOutcome.WRITTEN
