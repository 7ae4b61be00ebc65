from fastapi import APIRouter
from timetrack.api import health
from timetrack.features import time_entries, timer

api_router = APIRouter()

# Include all sub-routers
api_router.include_router(health.router)
api_router.include_router(timer.router)
api_router.include_router(time_entries.router)
