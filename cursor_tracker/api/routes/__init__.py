"""API router aggregation."""

from fastapi import APIRouter

from cursor_tracker.api.routes.stream import router as stream_router
from cursor_tracker.api.routes.system import router as system_router
from cursor_tracker.api.routes.usage import router as usage_router

api_router = APIRouter(prefix="/api")
api_router.include_router(usage_router)
api_router.include_router(stream_router)
api_router.include_router(system_router)
