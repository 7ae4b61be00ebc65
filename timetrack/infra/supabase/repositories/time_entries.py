"""Time entry repository"""
from supabase import Client  # type: ignore

from timetrack.models.time_entry import TimeEntry, TimeEntryCreate

from .base import BaseRepository


class TimeEntryRepository(BaseRepository[TimeEntry, TimeEntryCreate]):
    """Repository for time entry operations"""

    def __init__(self, client: Client):
        super().__init__(client, "time_entries", TimeEntry)
