import logging

# Log configuration (before other imports)
# ruff: noqa: E402
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    force=True
)

from contextlib import asynccontextmanager  # noqa: E402

from fastapi import FastAPI  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from timetrack.api.base import api_router  # noqa: E402
from timetrack.config import CORS_ALLOW_ORIGINS  # noqa: E402
from timetrack.services.clock import get_clock_sync_service  # noqa: E402

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Clock sync runs in the background; timers work on local time until it lands
    clock = get_clock_sync_service()
    clock.start()
    logger.info("Clock sync started")
    yield
    await clock.stop()
    logger.info("Clock sync stopped")


app = FastAPI(
    title="TimeTrack Backend API",
    description="Backend API for TimeTrack - live timer synchronization and time entries",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include all API routes
app.include_router(api_router)


@app.get("/")
def read_root():
    return {
        "message": "TimeTrack Backend API",
        "docs": "/docs",
        "version": "1.0.0"
    }
