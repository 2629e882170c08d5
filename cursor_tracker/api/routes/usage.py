"""Usage data endpoints — the persisted documents, read-only."""

from typing import Any

from fastapi import APIRouter, HTTPException, status

from cursor_tracker.api.deps import Store
from cursor_tracker.core import cache
from cursor_tracker.services.storage import DataStore

router = APIRouter(tags=["usage"])


def _not_found(what: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No {what} available")


async def load_stats_document(store: DataStore) -> dict[str, Any] | None:
    async def _load():
        stats = await store.load_stats()
        return stats.to_json_dict() if stats is not None else None

    return await cache.get_or_load(("stats", str(store.data_dir)), _load)


async def load_usage_document(store: DataStore) -> dict[str, Any] | None:
    async def _load():
        dataset = await store.load_dataset()
        return dataset.to_json_dict() if dataset is not None else None

    return await cache.get_or_load(("data", str(store.data_dir)), _load)


async def load_user_document(store: DataStore) -> dict[str, Any] | None:
    return await cache.get_or_load(("user-info", str(store.data_dir)), store.load_user_info)


@router.get("/stats")
async def get_stats(store: Store) -> dict:
    """Aggregated statistics, recomputed from the stored events."""
    stats = await load_stats_document(store)
    if stats is None:
        raise _not_found("statistics")
    return stats


@router.get("/data")
async def get_data(store: Store) -> dict:
    """The whole usage dataset including sync metadata."""
    data = await load_usage_document(store)
    if data is None:
        raise _not_found("data")
    return data


@router.get("/all-events")
async def get_all_events(store: Store) -> list[dict]:
    data = await load_usage_document(store)
    if data is None or "events" not in data:
        raise _not_found("events")
    return data["events"]


@router.get("/user-info")
async def get_user_info(store: Store) -> dict:
    user_info = await load_user_document(store)
    if not user_info:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User info not available")
    return user_info
