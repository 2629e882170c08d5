"""FastAPI application entrypoint."""

import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse

from cursor_tracker.api.deps import get_store
from cursor_tracker.api.routes import api_router
from cursor_tracker.core.config import get_settings
from cursor_tracker.services.broadcast import Broadcaster
from cursor_tracker.services.collector import UsageCollector
from cursor_tracker.services.session import CookieSession
from cursor_tracker.workers.tracker import UsageTracker

DASHBOARD_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "dashboard")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    store = get_store()
    await store.initialize()

    broadcaster = Broadcaster()
    app.state.broadcaster = broadcaster

    session = None
    tracker = None
    if settings.collect_on_startup:
        session = CookieSession.from_settings(settings)
        collector = UsageCollector(settings, store, session, publish=broadcaster.publish)
        tracker = UsageTracker(collector, settings.collection_interval, settings.shutdown_grace)
        tracker.start()
    app.state.tracker = tracker

    yield

    if tracker is not None:
        await tracker.stop()
    if session is not None:
        await session.close()


app = FastAPI(
    title="Cursor Usage Tracker",
    version="0.1.0",
    description="Collects Cursor dashboard usage events and serves aggregated statistics",
    lifespan=lifespan,
)

# ── CORS ─────────────────────────────────────────────────────
_settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in _settings.allowed_origins.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── API routes ───────────────────────────────────────────────
app.include_router(api_router)


# ── Dashboard ────────────────────────────────────────────────
if os.path.isdir(DASHBOARD_DIR):

    @app.get("/", include_in_schema=False)
    async def dashboard_root() -> FileResponse:
        return FileResponse(os.path.join(DASHBOARD_DIR, "index.html"))
