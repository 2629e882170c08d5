"""Active-event reconciler — re-checks recent events for server-side changes.

The vendor amends credits, cost and tokens of recent requests after the
fact. When an incremental sync finds nothing new, the last 30 days are
fetched once more and every returned record whose timestamp matches a
recent stored event is normalized as an update candidate. This is a repair
pass: any failure yields an empty list.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from cursor_tracker.models import SyncStrategy, UsageEvent, utcnow
from cursor_tracker.services.merge import (
    DEFAULT_ACTIVE_WINDOW_HOURS,
    DEFAULT_MAX_ACTIVE_EVENTS,
    matches_timestamp,
    select_active_events,
)
from cursor_tracker.services.normalizer import normalize_event
from cursor_tracker.services.planner import SyncPlan
from cursor_tracker.services.session import SessionProvider
from cursor_tracker.services.storage import DataStore

logger = logging.getLogger(__name__)

RECONCILE_WINDOW_DAYS = 30
RECONCILE_PAGE_SIZE = 500


class ActiveEventReconciler:
    def __init__(
        self,
        session: SessionProvider,
        store: DataStore,
        *,
        window_hours: float = DEFAULT_ACTIVE_WINDOW_HOURS,
        max_active: int = DEFAULT_MAX_ACTIVE_EVENTS,
        lookback_days: int = RECONCILE_WINDOW_DAYS,
        page_size: int = RECONCILE_PAGE_SIZE,
        team_id: int = 0,
    ) -> None:
        self.session = session
        self.store = store
        self.window_hours = window_hours
        self.max_active = max_active
        self.lookback_days = lookback_days
        self.page_size = page_size
        self.team_id = team_id

    async def collect_updates(self, now: datetime | None = None) -> list[UsageEvent]:
        """Normalized candidates for every active event the vendor still reports."""
        now = now or utcnow()
        step = "load dataset"
        try:
            dataset = await self.store.load_dataset()
            if dataset is None or not dataset.events:
                logger.info("No existing data to check for updates")
                return []

            step = "select active events"
            active = select_active_events(
                dataset.events, now, self.window_hours, self.max_active
            )
            if not active:
                logger.info("No active events to check for updates")
                return []
            active_ids = [e.id for e in active]

            step = "read cookies"
            cookies = await self.session.cookie_header()

            step = "request events"
            plan = SyncPlan(
                strategy=SyncStrategy.INCREMENTAL,
                start_date=now - timedelta(days=self.lookback_days),
                end_date=now,
                page_size=self.page_size,
            )
            response = await self.session.post_events(plan.request_body(1, self.team_id), cookies)
            if not response:
                logger.warning("Empty response for active events check")
                return []

            step = "filter events"
            # Which key the vendor uses here is not settled; accept both.
            raw_events = response.get("events") or response.get("usageEventsDisplay") or []
            relevant = [
                raw for raw in raw_events
                if isinstance(raw, dict)
                and any(matches_timestamp(active_id, raw.get("timestamp")) for active_id in active_ids)
            ]
            logger.info(
                "Found %d of %d returned events matching %d active events",
                len(relevant), len(raw_events), len(active_ids),
            )

            step = "parse events"
            updates = [normalize_event(raw, now) for raw in relevant]
            return [e for e in updates if e is not None]
        except Exception:
            logger.exception("Active event reconciliation failed at step '%s'", step)
            return []
