"""Repository exports"""
from .base import BaseRepository
from .time_entries import TimeEntryRepository

__all__ = [
    'BaseRepository',
    'TimeEntryRepository',
]
