"""Session provider — an authenticated HTTP session against the vendor dashboard.

The pipeline only depends on the ``SessionProvider`` protocol. ``CookieSession``
implements it with an ``httpx.AsyncClient`` seeded from exported browser
cookies, which is enough for the dashboard's JSON API.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Protocol

import httpx

from cursor_tracker.core.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_COOKIE_DOMAIN = ".cursor.com"
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
AUTH_POLL_INTERVAL = 1.0


class TrackerError(Exception):
    """Base class for collection failures."""


class AuthenticationError(TrackerError):
    """The session never reached the authenticated dashboard."""


class SessionProvider(Protocol):
    async def post_events(self, body: dict, cookies: str) -> dict: ...

    async def cookie_header(self) -> str: ...

    async def get_json(self, path: str) -> dict: ...

    async def wait_for_authentication(self, timeout: float) -> bool: ...

    async def fetch_dashboard_html(self) -> str: ...

    async def close(self) -> None: ...


def load_cookies(path: str | Path) -> list[dict]:
    """Read an exported cookie file: ``{"cookies": [{name, value, ...}]}`` or a bare list."""
    with open(path, encoding="utf-8") as fh:
        data = json.load(fh)
    cookies = data.get("cookies", []) if isinstance(data, dict) else data
    if not isinstance(cookies, list):
        raise ValueError(f"Unexpected cookie file layout in {path}")
    return [c for c in cookies if isinstance(c, dict) and c.get("name")]


def parse_cookie_header(header: str) -> list[dict]:
    """``"a=1; b=2"`` -> ``[{"name": "a", "value": "1"}, ...]``."""
    cookies = []
    for part in header.split(";"):
        name, sep, value = part.strip().partition("=")
        if sep and name:
            cookies.append({"name": name, "value": value})
    return cookies


class CookieSession:
    """SessionProvider backed by an httpx client carrying dashboard cookies."""

    def __init__(
        self,
        settings: Settings,
        cookies: list[dict] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self._client = httpx.AsyncClient(
            base_url=settings.vendor_base_url,
            timeout=settings.request_timeout,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT, "Accept": "*/*"},
            transport=transport,
        )
        for cookie in cookies or []:
            self._client.cookies.set(
                cookie["name"],
                str(cookie.get("value", "")),
                domain=cookie.get("domain") or DEFAULT_COOKIE_DOMAIN,
                path=cookie.get("path") or "/",
            )
        logger.info("Session created with %d cookies", len(cookies or []))

    @classmethod
    def from_settings(cls, settings: Settings) -> CookieSession:
        """Cookies from ``cookie_header`` when set, else from ``cookies_file``."""
        if settings.cookie_header:
            return cls(settings, parse_cookie_header(settings.cookie_header))
        path = Path(settings.cookies_file)
        if not path.is_file():
            logger.warning("No cookie file at %s, the session is anonymous", path)
            return cls(settings, [])
        cookies = load_cookies(path)
        logger.info("Loaded %d cookies from %s", len(cookies), path)
        return cls(settings, cookies)

    async def cookie_header(self) -> str:
        return "; ".join(f"{c.name}={c.value}" for c in self._client.cookies.jar)

    async def post_events(self, body: dict, cookies: str) -> dict:
        headers = {
            "Content-Type": "application/json",
            "Referer": self.settings.dashboard_url,
            "Origin": self.settings.vendor_base_url,
        }
        if cookies:
            headers["Cookie"] = cookies
        resp = await self._client.post(self.settings.events_api_path, json=body, headers=headers)
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, dict):
            raise ValueError("Events endpoint returned a non-object body")
        return data

    async def get_json(self, path: str) -> dict:
        resp = await self._client.get(path)
        resp.raise_for_status()
        data = resp.json()
        return data if isinstance(data, dict) else {}

    async def wait_for_authentication(self, timeout: float) -> bool:
        """Poll the dashboard until it stops redirecting to the login page."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            try:
                resp = await self._client.get(self.settings.dashboard_path)
                url = str(resp.url)
                if resp.is_success and "/dashboard" in url and "/login" not in url:
                    logger.info("Authentication detected")
                    return True
                logger.debug("Dashboard not authenticated yet (%s)", url)
            except httpx.HTTPError as exc:
                logger.warning("Dashboard request failed: %s", exc)
            if loop.time() >= deadline:
                logger.warning("Authentication not reached within %.0fs", timeout)
                return False
            await asyncio.sleep(AUTH_POLL_INTERVAL)

    async def fetch_dashboard_html(self) -> str:
        resp = await self._client.get(self.settings.dashboard_path)
        resp.raise_for_status()
        return resp.text

    async def close(self) -> None:
        await self._client.aclose()
