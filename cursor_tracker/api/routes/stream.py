"""Live updates — Server-Sent Events pushed after every successful merge."""

import asyncio
import json
import logging
from collections.abc import AsyncGenerator

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from cursor_tracker.api.deps import Store, Updates
from cursor_tracker.api.routes.usage import (
    load_stats_document,
    load_usage_document,
    load_user_document,
)
from cursor_tracker.models import utcnow
from cursor_tracker.services.broadcast import Broadcaster
from cursor_tracker.services.storage import DataStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["stream"])

# Comment frame sent when nothing changed for a while, keeps proxies from closing.
KEEPALIVE_SECONDS = 15.0


def _format_sse(data: dict) -> str:
    """Format a single unnamed SSE event."""
    return f"data: {json.dumps(data)}\n\n"


async def build_update(store: DataStore) -> dict:
    """Snapshot of every document the dashboard renders."""
    stats, data, user_info = await asyncio.gather(
        load_stats_document(store),
        load_usage_document(store),
        load_user_document(store),
    )
    return {
        "stats": stats,
        "data": data,
        "userInfo": user_info,
        "timestamp": utcnow().isoformat(),
    }


async def _update_frame(store: DataStore) -> str:
    try:
        return _format_sse(await build_update(store))
    except Exception:
        logger.exception("Failed to build update")
        return _format_sse({"error": "Failed to load data"})


async def stream_updates(
    request: Request,
    store: DataStore,
    broadcaster: Broadcaster,
    keepalive: float = KEEPALIVE_SECONDS,
) -> AsyncGenerator[str, None]:
    """Initial snapshot on connect, then one snapshot per published change."""
    async with broadcaster.subscribe() as notifications:
        yield await _update_frame(store)
        while not await request.is_disconnected():
            try:
                await asyncio.wait_for(notifications.get(), timeout=keepalive)
            except asyncio.TimeoutError:
                yield ": keepalive\n\n"
                continue
            yield await _update_frame(store)


@router.get("/events")
async def events(request: Request, store: Store, updates: Updates) -> StreamingResponse:
    return StreamingResponse(
        stream_updates(request, store, updates),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
