"""Time entries feature module"""

from timetrack.features.time_entries.api import router, get_time_entry_repository
from timetrack.features.time_entries.schemas import CreateTimeEntryRequest

__all__ = [
    "router",
    "get_time_entry_repository",
    "CreateTimeEntryRequest",
]
