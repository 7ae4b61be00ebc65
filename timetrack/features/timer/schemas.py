"""Request and response schemas for the timer API"""

from typing import Optional

from pydantic import BaseModel


class StartTimerRequest(BaseModel):
    """Request model for starting a timer"""
    topic_id: Optional[int] = None
    description: Optional[str] = None
    duration: Optional[int] = None
    is_count_down: bool = False


class UpdateTimerRequest(BaseModel):
    """Request model for updating a timer - all fields optional"""
    is_running: Optional[bool] = None
    is_paused: Optional[bool] = None
    description: Optional[str] = None
    topic_id: Optional[int] = None


class StopTimerResponse(BaseModel):
    """Response model for stopping a timer"""
    success: bool
