"""Tests for the dashboard read endpoints."""

import pytest
from conftest import BASE_TS, MINUTE_MS, raw_event
from httpx import AsyncClient

from cursor_tracker.api.deps import get_broadcaster
from cursor_tracker.core import cache
from cursor_tracker.main import app
from cursor_tracker.services.normalizer import normalize_events
from cursor_tracker.services.storage import DataStore


async def _seed(store: DataStore) -> None:
    events = normalize_events([
        raw_event(BASE_TS, model="gpt-5"),
        raw_event(BASE_TS + MINUTE_MS, kind="USAGE_EVENT_KIND_ERRORED_NOT_CHARGED"),
    ])
    await store.merge_events(events, incremental=False)


@pytest.mark.asyncio
async def test_empty_store_returns_404(client: AsyncClient):
    for path in ("/api/stats", "/api/data", "/api/all-events"):
        resp = await client.get(path)
        assert resp.status_code == 404, path
    resp = await client.get("/api/user-info")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "User info not available"


@pytest.mark.asyncio
async def test_stats(client: AsyncClient, store: DataStore):
    await _seed(store)
    resp = await client.get("/api/stats")
    assert resp.status_code == 200
    stats = resp.json()
    assert stats["totalEvents"] == 2
    assert set(stats["byModel"]) == {"gpt-5", "claude-4-sonnet"}
    assert stats["byKind"]["errored_not_charged"]["count"] == 1
    assert len(stats["recentEvents"]) == 2


@pytest.mark.asyncio
async def test_data_and_all_events(client: AsyncClient, store: DataStore):
    await _seed(store)

    resp = await client.get("/api/data")
    assert resp.status_code == 200
    data = resp.json()
    assert data["totalEvents"] == 2
    assert data["lastSyncDate"] == str(BASE_TS + MINUTE_MS)
    assert data["syncMetadata"]["adaptivePageSize"] == 500

    resp = await client.get("/api/all-events")
    assert resp.status_code == 200
    events = resp.json()
    assert [e["model"] for e in events] == ["claude-4-sonnet", "gpt-5"]
    assert events[0]["tokenUsage"]["inputTokens"] == 100


@pytest.mark.asyncio
async def test_user_info(client: AsyncClient, store: DataStore):
    await store.save_user_info({"email": "dev@example.com", "sub": "user_1"})
    resp = await client.get("/api/user-info")
    assert resp.status_code == 200
    assert resp.json()["email"] == "dev@example.com"
    assert "sub" not in resp.json()


@pytest.mark.asyncio
async def test_reads_are_cached_until_publish(client: AsyncClient, store: DataStore, broadcaster):
    await _seed(store)
    assert (await client.get("/api/data")).json()["totalEvents"] == 2

    await store.merge_events(normalize_events([raw_event(BASE_TS)]), incremental=False)
    assert (await client.get("/api/data")).json()["totalEvents"] == 2

    broadcaster.publish()
    assert (await client.get("/api/data")).json()["totalEvents"] == 1


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/api/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "healthy"
    assert body["uptime"] >= 0
    assert "timestamp" in body


@pytest.mark.asyncio
async def test_dashboard_page(client: AsyncClient):
    resp = await client.get("/")
    assert resp.status_code == 200
    assert "EventSource" in resp.text


@pytest.mark.asyncio
async def test_events_unavailable_without_broadcaster(client: AsyncClient):
    app.dependency_overrides.pop(get_broadcaster)
    cache.clear()
    resp = await client.get("/api/events")
    assert resp.status_code == 503


@pytest.mark.asyncio
async def test_dashboard_renders_vendor_strings_as_text(client: AsyncClient):
    page = (await client.get("/")).text
    assert "innerHTML" not in page
    assert "textContent" in page
