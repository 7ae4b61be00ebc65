"""Client-side timer reconciliation"""
from .api_client import TimerApiClient
from .completion import (
    CompletionCoordinator,
    CompletionLock,
    CompletionOutcome,
    TimeEntryDraft,
    TimeEntryWriter,
)
from .reconciler import TimerPhase, TimerReconciler
from .snapshot import (
    ClientTimerSnapshot,
    JsonFileSnapshotStorage,
    LockKey,
    MemorySnapshotStorage,
    SnapshotStorage,
)

__all__ = [
    'TimerApiClient',
    'CompletionCoordinator',
    'CompletionLock',
    'CompletionOutcome',
    'TimeEntryDraft',
    'TimeEntryWriter',
    'TimerPhase',
    'TimerReconciler',
    'ClientTimerSnapshot',
    'JsonFileSnapshotStorage',
    'LockKey',
    'MemorySnapshotStorage',
    'SnapshotStorage',
]
