"""Timer control API endpoints"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from timetrack.middleware.auth import get_current_user_id
from timetrack.features.timer.domain import TimerProjection
from timetrack.features.timer.registry import ActiveTimerRegistry, get_timer_registry
from timetrack.features.timer.schemas import (
    StartTimerRequest,
    StopTimerResponse,
    UpdateTimerRequest,
)

logger = logging.getLogger(__name__)


router = APIRouter(prefix="/api/timer", tags=["timer"])


@router.get("/active", response_model=Optional[TimerProjection])
async def get_active_timer(
    user_id: str = Depends(get_current_user_id),
    registry: ActiveTimerRegistry = Depends(get_timer_registry),
):
    """
    Get the authenticated user's live timer.

    Expired countdowns are swept first, so a finished timer reads as null.
    """
    registry.sweep_expired()
    return registry.with_elapsed(user_id)


@router.post("/start", response_model=TimerProjection)
async def start_timer(
    request: StartTimerRequest,
    user_id: str = Depends(get_current_user_id),
    registry: ActiveTimerRegistry = Depends(get_timer_registry),
):
    """
    Start a timer, replacing any timer the user already has.

    Raises:
        400: Countdown requested with a non-positive duration
    """
    if request.is_count_down and request.duration is not None and request.duration <= 0:
        raise HTTPException(
            status_code=400,
            detail="Countdown timer duration must be greater than 0"
        )

    record = registry.start(
        user_id,
        topic_id=request.topic_id,
        description=request.description,
        duration=request.duration,
        is_count_down=request.is_count_down,
    )
    return registry.project(record)


@router.patch("/update", response_model=Optional[TimerProjection])
async def update_timer(
    request: UpdateTimerRequest,
    user_id: str = Depends(get_current_user_id),
    registry: ActiveTimerRegistry = Depends(get_timer_registry),
):
    """
    Pause, resume or edit the user's timer.

    Returns null when the user has no active timer.
    """
    record = registry.update(user_id, request.model_dump(exclude_unset=True))
    if record is None:
        return None
    return registry.project(record)


@router.post("/stop", response_model=StopTimerResponse)
async def stop_timer(
    user_id: str = Depends(get_current_user_id),
    registry: ActiveTimerRegistry = Depends(get_timer_registry),
):
    """Stop the user's timer. Idempotent."""
    registry.stop(user_id)
    return {"success": True}
