"""Shared test fixtures — temp data store, fake dashboard session + test client."""

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from cursor_tracker.api.deps import get_broadcaster, get_store
from cursor_tracker.core import cache
from cursor_tracker.core.config import Settings
from cursor_tracker.main import app
from cursor_tracker.services.broadcast import Broadcaster
from cursor_tracker.services.storage import DataStore

# 2023-11-14T22:13:20Z
BASE_TS = 1_700_000_000_000
MINUTE_MS = 60_000


def raw_event(
    timestamp: int | str | None,
    *,
    kind: str = "USAGE_EVENT_KIND_USAGE_BASED",
    model: str = "claude-4-sonnet",
    input_tokens: int = 100,
    output_tokens: int = 50,
    total_cents: float = 12.0,
    requests_costs: float = 1.0,
    **extra,
) -> dict:
    """A vendor usage record as the events endpoint returns it."""
    record = {
        "timestamp": None if timestamp is None else str(timestamp),
        "model": model,
        "kind": kind,
        "requestsCosts": requests_costs,
        "usageBasedCosts": "-",
        "tokenUsage": {
            "inputTokens": input_tokens,
            "outputTokens": output_tokens,
            "cacheReadTokens": 0,
            "cacheWriteTokens": 0,
            "totalCents": total_cents,
        },
    }
    record.update(extra)
    return record


def page(*records: dict) -> dict:
    return {"usageEventsDisplay": list(records), "totalUsageEventsCount": len(records)}


class FakeSession:
    """In-memory SessionProvider.

    ``responses`` are returned by successive ``post_events`` calls; an
    Exception instance is raised instead. Once exhausted every call returns
    an empty page.
    """

    def __init__(
        self,
        responses: list | None = None,
        *,
        authenticated: bool = True,
        documents: dict | None = None,
        html: str = "",
    ) -> None:
        self.responses = list(responses or [])
        self.authenticated = authenticated
        self.documents = documents or {}
        self.html = html
        self.bodies: list[dict] = []
        self.closed = False

    async def post_events(self, body: dict, cookies: str) -> dict:
        self.bodies.append(body)
        if not self.responses:
            return page()
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def cookie_header(self) -> str:
        return "WorkosCursorSessionToken=abc"

    async def get_json(self, path: str) -> dict:
        document = self.documents.get(path, {})
        if isinstance(document, Exception):
            raise document
        return document

    async def wait_for_authentication(self, timeout: float) -> bool:
        return self.authenticated

    async def fetch_dashboard_html(self) -> str:
        return self.html

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        data_dir=str(tmp_path),
        page_delay=0,
        auth_wait_seconds=0,
        collect_on_startup=False,
    )


@pytest.fixture
async def store(tmp_path) -> DataStore:
    data_store = DataStore(tmp_path)
    await data_store.initialize()
    return data_store


@pytest.fixture
def broadcaster() -> Broadcaster:
    return Broadcaster()


@pytest.fixture
async def client(store, broadcaster) -> AsyncGenerator[AsyncClient, None]:
    """HTTPX async test client over a temp data directory."""
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_broadcaster] = lambda: broadcaster
    cache.clear()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    cache.clear()
