from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import Optional


class TimeEntryBase(BaseModel):
    """Base time entry fields"""
    topic_id: Optional[int] = None
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    duration: int  # seconds


class TimeEntryCreate(TimeEntryBase):
    """Time entry creation model"""
    user_id: str


class TimeEntry(TimeEntryBase):
    """Complete time entry model from database"""
    id: int
    user_id: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
