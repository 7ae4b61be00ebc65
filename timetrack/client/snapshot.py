"""Client timer snapshot and its durable local storage"""

import logging
import os
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple, Union

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

# (lifecycle start time, topic id) identifies one logical timer
LockKey = Tuple[str, Optional[int]]


class ClientTimerSnapshot(BaseModel):
    """Locally ticked timer state, mirrored to durable storage"""
    seconds: int = 0
    is_running: bool = False
    is_paused: bool = False
    is_completed: bool = False
    is_count_down: bool = False
    user_id: Optional[str] = None
    topic_id: Optional[int] = None
    description: Optional[str] = None
    start_time: Optional[datetime] = None
    original_start_time: Optional[datetime] = None
    duration: Optional[int] = None
    original_duration: Optional[int] = None
    paused_duration: Optional[int] = None
    remaining_seconds: Optional[int] = None

    @property
    def lifecycle_start(self) -> Optional[datetime]:
        return self.original_start_time or self.start_time

    @property
    def lock_key(self) -> Optional[LockKey]:
        start = self.lifecycle_start
        if start is None:
            return None
        return (start.isoformat(), self.topic_id)

    @property
    def is_idle(self) -> bool:
        return not (self.is_running or self.is_paused or self.is_completed)


class SnapshotStorage(ABC):
    """A single durable slot holding the serialized snapshot"""

    @abstractmethod
    def load(self) -> Optional[ClientTimerSnapshot]:
        """Return the stored snapshot, or None if empty or unreadable"""

    @abstractmethod
    def save(self, snapshot: ClientTimerSnapshot) -> None:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...


class MemorySnapshotStorage(SnapshotStorage):
    """Process-local slot; keeps the serialized form so loads never alias live state"""

    def __init__(self):
        self._data: Optional[str] = None

    def load(self) -> Optional[ClientTimerSnapshot]:
        if self._data is None:
            return None
        try:
            return ClientTimerSnapshot.model_validate_json(self._data)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable timer snapshot: {e}")
            return None

    def save(self, snapshot: ClientTimerSnapshot) -> None:
        self._data = snapshot.model_dump_json()

    def clear(self) -> None:
        self._data = None


class JsonFileSnapshotStorage(SnapshotStorage):
    """Snapshot persisted as one JSON file, replaced atomically on save"""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> Optional[ClientTimerSnapshot]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.error(f"Error loading timer state from {self.path}: {e}")
            return None

        try:
            snapshot = ClientTimerSnapshot.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable timer snapshot at {self.path}: {e}")
            return None

        logger.debug(f"Loaded timer state from {self.path}")
        return snapshot

    def save(self, snapshot: ClientTimerSnapshot) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(snapshot.model_dump_json(), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(f"Error saving timer state to {self.path}: {e}")

    def clear(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Error clearing timer state at {self.path}: {e}")
