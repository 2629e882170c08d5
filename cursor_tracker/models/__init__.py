"""Re-export the document models."""

from cursor_tracker.models.base import CamelModel, from_epoch_ms, to_epoch_ms, utcnow
from cursor_tracker.models.dataset import (
    DEFAULT_PAGE_SIZE,
    SyncMetadata,
    SyncStrategy,
    UsageDataset,
)
from cursor_tracker.models.event import CostInfo, EventSource, TokenUsage, UsageEvent
from cursor_tracker.models.stats import DailyAggregate, RecentEvent, Stats, UsageAggregate

__all__ = [
    "DEFAULT_PAGE_SIZE",
    "CamelModel",
    "CostInfo",
    "DailyAggregate",
    "EventSource",
    "RecentEvent",
    "Stats",
    "SyncMetadata",
    "SyncStrategy",
    "TokenUsage",
    "UsageAggregate",
    "UsageDataset",
    "UsageEvent",
    "from_epoch_ms",
    "to_epoch_ms",
    "utcnow",
]
