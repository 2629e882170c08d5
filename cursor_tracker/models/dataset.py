"""UsageDataset — the persisted usage document and its sync metadata."""

from datetime import datetime
from enum import StrEnum

from pydantic import Field

from cursor_tracker.models.base import CamelModel, utcnow
from cursor_tracker.models.event import UsageEvent

DEFAULT_PAGE_SIZE = 500


class SyncStrategy(StrEnum):
    FULL = "full"
    INCREMENTAL = "incremental"


class SyncMetadata(CamelModel):
    last_successful_sync: datetime | None = None
    adaptive_page_size: int = DEFAULT_PAGE_SIZE
    sync_strategy: SyncStrategy = SyncStrategy.FULL


class UsageDataset(CamelModel):
    timestamp: datetime = Field(default_factory=utcnow)
    # Watermark: epoch millis, as a string.
    last_sync_date: str | None = None
    total_events: int = 0
    sync_metadata: SyncMetadata = Field(default_factory=SyncMetadata)
    events: list[UsageEvent] = Field(default_factory=list)
