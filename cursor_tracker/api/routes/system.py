"""Health endpoint."""

import time

from fastapi import APIRouter
from pydantic import BaseModel

from cursor_tracker.models import utcnow

router = APIRouter(tags=["system"])

_start_time = time.monotonic()


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    uptime: float


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(
        status="healthy",
        timestamp=utcnow().isoformat(),
        uptime=round(time.monotonic() - _start_time, 3),
    )
