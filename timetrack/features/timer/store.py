"""Backing stores for active timer records"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from timetrack.features.timer.domain import TimerRecord


class TimerStore(ABC):
    """
    Storage interface for active timers, one record per user.

    The registry only talks to this interface so a persistent backend can be
    dropped in without touching the transition logic.
    """

    @abstractmethod
    def get(self, user_id: str) -> Optional[TimerRecord]:
        ...

    @abstractmethod
    def put(self, record: TimerRecord) -> None:
        """Create or replace the record for record.user_id"""

    @abstractmethod
    def delete(self, user_id: str) -> bool:
        """Remove the record; returns False if there was none"""

    @abstractmethod
    def all(self) -> List[TimerRecord]:
        ...


class InMemoryTimerStore(TimerStore):
    """Volatile dict-backed store; contents are lost on restart"""

    def __init__(self):
        self._timers: Dict[str, TimerRecord] = {}

    def get(self, user_id: str) -> Optional[TimerRecord]:
        return self._timers.get(user_id)

    def put(self, record: TimerRecord) -> None:
        self._timers[record.user_id] = record

    def delete(self, user_id: str) -> bool:
        return self._timers.pop(user_id, None) is not None

    def all(self) -> List[TimerRecord]:
        return list(self._timers.values())
