"""Time entries API endpoints"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from timetrack.infra.supabase import get_supabase_client
from timetrack.infra.supabase.repositories import TimeEntryRepository
from timetrack.middleware.auth import get_current_user_id
from timetrack.models.time_entry import TimeEntry, TimeEntryCreate
from timetrack.features.time_entries.schemas import CreateTimeEntryRequest

logger = logging.getLogger(__name__)


router = APIRouter(prefix="/api/time-entries", tags=["time-entries"])


def get_time_entry_repository() -> TimeEntryRepository:
    return TimeEntryRepository(get_supabase_client())


@router.post("", response_model=TimeEntry)
async def create_time_entry(
    request: CreateTimeEntryRequest,
    user_id: str = Depends(get_current_user_id),
    repo: TimeEntryRepository = Depends(get_time_entry_repository),
):
    """
    Record a finished timer as a time entry.

    Raises:
        400: Non-positive duration or end before start
        500: Storage failure
    """
    if request.duration < 1:
        raise HTTPException(status_code=400, detail="Duration must be at least 1 second")
    if request.end_time < request.start_time:
        raise HTTPException(status_code=400, detail="end_time must not be before start_time")

    try:
        entry = await repo.create(TimeEntryCreate(user_id=user_id, **request.model_dump()))
    except Exception as e:
        logger.error(f"Failed to create time entry for user {user_id}: {e}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to create time entry: {str(e)}"
        )

    logger.info(f"Time entry {entry.id} created for user {user_id}: {entry.duration}s")
    return entry
