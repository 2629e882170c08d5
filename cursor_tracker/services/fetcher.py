"""Paginated fetcher — pulls raw usage events page by page from the vendor API."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from cursor_tracker.services.page_size import AdaptivePageSize
from cursor_tracker.services.planner import SyncPlan
from cursor_tracker.services.session import SessionProvider

logger = logging.getLogger(__name__)

# Pause between pages so the vendor does not rate-limit the account.
DEFAULT_PAGE_DELAY = 0.5

PageSizeSink = Callable[[int], Awaitable[None]]


async def fetch_all_events(
    session: SessionProvider,
    plan: SyncPlan,
    controller: AdaptivePageSize,
    *,
    cookies: str = "",
    team_id: int = 0,
    page_delay: float = DEFAULT_PAGE_DELAY,
    on_page_size: PageSizeSink | None = None,
) -> list[dict]:
    """Fetch every page of the planned window until an empty page comes back.

    A transport failure ends pagination early: the error is logged and the
    events gathered so far are returned, so a short result means "possibly
    incomplete", not "nothing happened".

    The requested page size stays fixed for the whole fetch so page numbers
    keep addressing the same offsets; the controller's adapted size is
    reported through ``on_page_size`` and used by the next sync.
    """
    events: list[dict] = []
    page = 1
    logger.info(
        "Fetching events (strategy: %s, pageSize: %d)", plan.strategy, plan.page_size
    )

    while True:
        started = time.monotonic()
        try:
            response = await session.post_events(plan.request_body(page, team_id), cookies)
            page_events = response.get("usageEventsDisplay") or []
            if not isinstance(page_events, list):
                raise ValueError("usageEventsDisplay is not a list")
        except Exception as exc:
            logger.error("Failed to fetch page %d: %s", page, exc)
            break
        latency_ms = (time.monotonic() - started) * 1000

        previous = controller.size
        new_size = controller.observe(latency_ms, len(page_events), plan.page_size)
        if on_page_size is not None and new_size != previous:
            try:
                await on_page_size(new_size)
            except Exception:
                logger.exception("Failed to persist adaptive page size")

        if not page_events:
            if plan.is_incremental:
                logger.info("No more events on page %d (normal for incremental sync)", page)
            else:
                logger.info("No more events on page %d", page)
            break

        events.extend(page_events)
        logger.info("Page %d: %d events (%.0f ms)", page, len(page_events), latency_ms)
        page += 1
        await asyncio.sleep(page_delay)

    logger.info("Fetched %d raw events over %d page(s)", len(events), page)
    return events
