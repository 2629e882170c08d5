"""Stats — aggregates derived from the full event set, never merged."""

from datetime import datetime

from pydantic import Field

from cursor_tracker.models.base import CamelModel, utcnow
from cursor_tracker.models.event import CostInfo, TokenUsage


class UsageAggregate(CamelModel):
    count: int = 0
    tokens: int = 0
    cost: float = 0
    credits: float = 0
    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_write_tokens: int = 0
    max_mode_count: int = 0


class DailyAggregate(CamelModel):
    count: int = 0
    tokens: int = 0
    cost: float = 0


class RecentEvent(CamelModel):
    id: str
    date: datetime
    model: str
    kind: str
    kind_display: str
    tokens: int
    cost: float
    token_usage: TokenUsage
    cost_info: CostInfo
    credits: float
    max_mode: bool


class Stats(CamelModel):
    timestamp: datetime = Field(default_factory=utcnow)
    total_events: int = 0
    total_tokens: int = 0
    total_cost: float = 0
    estimated_cost: float = 0
    total_max_mode: int = 0
    by_model: dict[str, UsageAggregate] = Field(default_factory=dict)
    by_kind: dict[str, UsageAggregate] = Field(default_factory=dict)
    by_date: dict[str, DailyAggregate] = Field(default_factory=dict)
    recent_events: list[RecentEvent] = Field(default_factory=list)
