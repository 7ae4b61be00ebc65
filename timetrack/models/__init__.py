"""Domain models for the application"""
from .time_entry import TimeEntry, TimeEntryBase, TimeEntryCreate

__all__ = [
    'TimeEntry', 'TimeEntryBase', 'TimeEntryCreate',
]
