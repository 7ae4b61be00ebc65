"""Clock synchronization"""
from .clock_sync_service import (
    ClockSyncService,
    get_clock_sync_service,
    reset_clock_sync_service,
    synced_now,
)

__all__ = [
    "ClockSyncService",
    "get_clock_sync_service",
    "reset_clock_sync_service",
    "synced_now",
]
