"""Request schemas for the time entries API"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class CreateTimeEntryRequest(BaseModel):
    """Request model for recording a finished timer"""
    topic_id: Optional[int] = None
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    duration: int
