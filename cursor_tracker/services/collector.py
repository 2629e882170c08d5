"""Collection pipeline — one end-to-end sync against the vendor dashboard.

Flow:
  1. Wait for the session to reach the authenticated dashboard
  2. Snapshot the account's profile and billing info
  3. Plan a full or incremental sync from the stored watermark
  4. Fetch every page and normalize the records
  5. Nothing new on an incremental sync: re-check active events for updates
  6. Still nothing: fall back to scraping the dashboard table (not persisted)
  7. Merge into the dataset, recompute stats, publish
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from cursor_tracker.core.config import Settings
from cursor_tracker.models import SyncStrategy, UsageEvent
from cursor_tracker.services.dom_extract import extract_usage_rows
from cursor_tracker.services.fetcher import fetch_all_events
from cursor_tracker.services.normalizer import normalize_events
from cursor_tracker.services.page_size import AdaptivePageSize
from cursor_tracker.services.planner import SyncPlan, plan_sync
from cursor_tracker.services.reconciler import ActiveEventReconciler
from cursor_tracker.services.session import AuthenticationError, SessionProvider
from cursor_tracker.services.storage import DataStore

logger = logging.getLogger(__name__)


@dataclass
class CollectionResult:
    """Summary of one collection cycle."""
    strategy: SyncStrategy
    fetched: int = 0
    new_count: int = 0
    updated_count: int = 0
    written: bool = False
    total_events: int = 0
    dom_events: list[UsageEvent] = field(default_factory=list)

    @property
    def collected(self) -> int:
        return self.fetched or len(self.dom_events)


class UsageCollector:
    def __init__(
        self,
        settings: Settings,
        store: DataStore,
        session: SessionProvider,
        publish: Callable[[], None] | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.session = session
        self.publish = publish
        self.reconciler = ActiveEventReconciler(
            session,
            store,
            window_hours=settings.active_window_hours,
            max_active=settings.max_active_events,
            lookback_days=settings.reconcile_window_days,
            page_size=settings.reconcile_page_size,
            team_id=settings.team_id,
        )

    async def collect(self) -> CollectionResult:
        """Run one cycle. Raises AuthenticationError and persistence errors."""
        logger.info("Starting data collection...")
        if not await self.session.wait_for_authentication(self.settings.auth_wait_seconds):
            raise AuthenticationError("Dashboard session is not authenticated")

        await self.collect_user_info()

        plan = plan_sync(
            await self.store.load_sync_state(),
            default_page_size=self.settings.default_page_size,
        )
        logger.info("Sync strategy: %s (from %s)", plan.strategy, plan.start_date.isoformat())
        result = CollectionResult(strategy=plan.strategy)

        controller = AdaptivePageSize(
            plan.page_size,
            minimum=self.settings.min_page_size,
            maximum=self.settings.max_page_size,
        )
        events = await self._collect_from_api(plan, controller)
        if plan.is_incremental and not events:
            logger.info("No new events found, checking active events for updates...")
            events = await self.reconciler.collect_updates()

        if not events:
            logger.warning("No data collected from API, trying DOM extraction...")
            result.dom_events = await self._collect_from_dom()
            return result

        result.fetched = len(events)
        saved = await self.store.merge_events(
            events, incremental=plan.is_incremental, page_size=controller.size
        )
        result.written = saved.written
        result.new_count = saved.new_count
        result.updated_count = saved.updated_count
        result.total_events = saved.total_events

        if saved.written:
            if self.settings.retention_days:
                await self.store.cleanup_old_events(self.settings.retention_days)
            if self.publish is not None:
                self.publish()
        logger.info(
            "Collected %d events: %d new, %d updated",
            result.fetched, result.new_count, result.updated_count,
        )
        return result

    async def collect_user_info(self) -> None:
        """Merge the profile and billing documents into the user snapshot. Never raises."""
        try:
            documents = await asyncio.gather(
                self.session.get_json(self.settings.auth_me_path),
                self.session.get_json(self.settings.billing_path),
                return_exceptions=True,
            )
            user_info: dict = {}
            for path, doc in zip((self.settings.auth_me_path, self.settings.billing_path), documents):
                if isinstance(doc, BaseException):
                    logger.warning("User info request %s failed: %s", path, doc)
                elif doc:
                    user_info.update(doc)
            if user_info:
                await self.store.save_user_info(user_info)
            else:
                logger.warning("No user info collected")
        except Exception:
            logger.exception("Failed to collect user info")

    async def _collect_from_api(
        self, plan: SyncPlan, controller: AdaptivePageSize
    ) -> list[UsageEvent]:
        try:
            cookies = await self.session.cookie_header()
        except Exception:
            logger.exception("Failed to read session cookies")
            return []
        raw_events = await fetch_all_events(
            self.session,
            plan,
            controller,
            cookies=cookies,
            team_id=self.settings.team_id,
            page_delay=self.settings.page_delay,
            on_page_size=self.store.save_page_size,
        )
        events = normalize_events(raw_events)
        dropped = len(raw_events) - len(events)
        if dropped:
            logger.warning("Dropped %d unusable usage records", dropped)
        logger.info("Collected %d events from API", len(events))
        return events

    async def _collect_from_dom(self) -> list[UsageEvent]:
        try:
            html = await self.session.fetch_dashboard_html()
            events = extract_usage_rows(html)
        except Exception:
            logger.exception("DOM collection failed")
            return []
        logger.info("Collected %d events from DOM", len(events))
        return events
