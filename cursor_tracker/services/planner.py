"""Sync planner — chooses full vs. incremental sync and the window to request."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from cursor_tracker.models import (
    DEFAULT_PAGE_SIZE,
    SyncMetadata,
    SyncStrategy,
    from_epoch_ms,
    to_epoch_ms,
    utcnow,
)

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class SyncState:
    """What the store knows about the previous sync."""
    last_sync_date: str | None = None
    metadata: SyncMetadata | None = None


@dataclass
class SyncPlan:
    strategy: SyncStrategy
    start_date: datetime
    end_date: datetime
    page_size: int

    @property
    def is_incremental(self) -> bool:
        return self.strategy == SyncStrategy.INCREMENTAL

    def request_body(self, page: int, team_id: int = 0) -> dict:
        """JSON body for one page of the vendor events endpoint."""
        return {
            "teamId": team_id,
            "startDate": str(to_epoch_ms(self.start_date)),
            "endDate": str(to_epoch_ms(self.end_date)),
            "page": page,
            "pageSize": self.page_size,
        }


def plan_sync(
    state: SyncState | None,
    now: datetime | None = None,
    default_page_size: int = DEFAULT_PAGE_SIZE,
) -> SyncPlan:
    """Incremental from the watermark when there is one, otherwise a full sync."""
    now = now or utcnow()
    watermark = _parse_watermark(state.last_sync_date if state else None)

    if state is None or watermark is None:
        return SyncPlan(
            strategy=SyncStrategy.FULL,
            start_date=EPOCH,
            end_date=now,
            page_size=default_page_size,
        )

    page_size = default_page_size
    if state.metadata is not None and state.metadata.adaptive_page_size:
        page_size = state.metadata.adaptive_page_size
    return SyncPlan(
        strategy=SyncStrategy.INCREMENTAL,
        start_date=watermark,
        end_date=now,
        page_size=page_size,
    )


def _parse_watermark(value: str | None) -> datetime | None:
    if not value or value == "0":
        return None
    try:
        return from_epoch_ms(int(value))
    except (TypeError, ValueError, OverflowError, OSError):
        logger.warning("Ignoring unreadable sync watermark %r", value)
        return None
