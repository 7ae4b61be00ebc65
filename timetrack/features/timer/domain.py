"""Domain models for the live timer feature"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class TimerRecord(BaseModel):
    """
    Authoritative state of one user's live timer.

    start_time is the reference point for elapsed time and is re-anchored on
    every resume; original_start_time and original_duration are fixed at
    start and identify the logical timer lifecycle.
    """
    user_id: str
    topic_id: Optional[int] = None
    description: Optional[str] = None
    start_time: datetime
    original_start_time: datetime
    is_count_down: bool = False
    duration: Optional[int] = None  # countdown seconds, remaining seconds after a resume
    original_duration: Optional[int] = None
    is_running: bool = True
    is_paused: bool = False
    paused_duration: Optional[int] = None  # only while paused
    remaining_seconds: Optional[int] = None  # only while paused

    def has_valid_duration(self) -> bool:
        return self.duration is not None and self.duration > 0


class TimerProjection(TimerRecord):
    """Read-only view of a TimerRecord with elapsed/remaining time filled in"""
    elapsed_seconds: int = 0
