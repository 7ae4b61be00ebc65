"""Health check and monitoring endpoints"""

from fastapi import APIRouter, Depends

from timetrack.features.timer.registry import ActiveTimerRegistry, get_timer_registry
from timetrack.services.clock import ClockSyncService, get_clock_sync_service

router = APIRouter(prefix="/api/health", tags=["health"])


@router.get("/clock")
async def get_clock_health(
    clock: ClockSyncService = Depends(get_clock_sync_service),
    registry: ActiveTimerRegistry = Depends(get_timer_registry),
):
    """
    Get clock synchronization status.

    Returns the current offset against the time authorities, whether the
    last probe is still fresh, and how many live timers the registry holds.
    """
    status = clock.status()
    return {
        "status": "healthy" if status["synced"] else "degraded",
        **status,
        "active_timers": len(registry.active_timers()),
    }


@router.get("/")
async def health_check():
    """Basic health check endpoint"""
    return {
        "status": "healthy",
        "service": "timetrack-backend",
    }
