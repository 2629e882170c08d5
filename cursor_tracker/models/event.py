"""UsageEvent model — one normalized vendor usage event."""

from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from pydantic import Field, field_validator

from cursor_tracker.models.base import CamelModel


class EventSource(StrEnum):
    API = "API"
    DOM = "DOM"


class TokenUsage(CamelModel):
    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_write_tokens: int = 0
    total_tokens: int = 0


class CostInfo(CamelModel):
    total_cents: float = 0
    requests_costs: float = 0
    usage_based_costs: float = 0
    is_included: bool = False
    is_free: bool = False
    display_cost: float = 0
    original_cost: float = 0

    # Only present on events the vendor reports with a discount applied.
    discounted_cost: float | None = None
    discount: float | None = None


class UsageEvent(CamelModel):
    id: str
    date: datetime
    model: str = "auto"
    kind: str = "unknown"
    kind_display: str = "Unknown"
    tokens: int = 0
    token_usage: TokenUsage = Field(default_factory=TokenUsage)
    cost: float = 0
    cost_info: CostInfo = Field(default_factory=CostInfo)
    credits: float = 0
    max_mode: bool = False
    source: EventSource = EventSource.API

    # The vendor record this event was built from, kept for audit.
    raw_data: dict[str, Any] | None = None

    @property
    def timestamp_prefix(self) -> str:
        """The vendor timestamp part of the id, the only part stable across fetches."""
        return self.id.partition("_")[0]

    def resolved_max_mode(self) -> bool:
        """``rawData.maxMode`` wins when the vendor sent it at the top level."""
        if self.raw_data and self.raw_data.get("maxMode") is not None:
            return bool(self.raw_data["maxMode"])
        return self.max_mode

    @field_validator("date")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
