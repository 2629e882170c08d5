"""FastAPI dependencies for the document store and the publish channel."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from cursor_tracker.core.config import get_settings
from cursor_tracker.services.broadcast import Broadcaster
from cursor_tracker.services.storage import DataStore


def get_store() -> DataStore:
    """Store over the configured data directory (stateless, cheap to build)."""
    settings = get_settings()
    return DataStore(
        settings.data_dir,
        active_window_hours=settings.active_window_hours,
        max_active_events=settings.max_active_events,
        default_page_size=settings.default_page_size,
    )


def get_broadcaster(request: Request) -> Broadcaster:
    """The broadcaster created by the application lifespan."""
    broadcaster = getattr(request.app.state, "broadcaster", None)
    if broadcaster is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Live updates are not available",
        )
    return broadcaster


# Typed shorthand for use in route signatures
Store = Annotated[DataStore, Depends(get_store)]
Updates = Annotated[Broadcaster, Depends(get_broadcaster)]
