# API module exports
from timetrack.api import health
from timetrack.api.base import api_router

__all__ = ["health", "api_router"]
