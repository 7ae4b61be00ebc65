"""Live timer feature module"""

from timetrack.features.timer.api import router
from timetrack.features.timer.domain import TimerProjection, TimerRecord
from timetrack.features.timer.registry import ActiveTimerRegistry, get_timer_registry
from timetrack.features.timer.store import InMemoryTimerStore, TimerStore
from timetrack.features.timer.schemas import (
    StartTimerRequest,
    StopTimerResponse,
    UpdateTimerRequest,
)

__all__ = [
    "router",
    "ActiveTimerRegistry",
    "get_timer_registry",
    "InMemoryTimerStore",
    "TimerStore",
    "TimerProjection",
    "TimerRecord",
    "StartTimerRequest",
    "StopTimerResponse",
    "UpdateTimerRequest",
]
