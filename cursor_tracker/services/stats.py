"""Statistics aggregator — a pure recompute over the whole event set."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone

from cursor_tracker.models import (
    DailyAggregate,
    RecentEvent,
    Stats,
    UsageAggregate,
    UsageEvent,
)

RECENT_EVENTS_LIMIT = 10

# Shown under its kind, but never counted towards plan cost.
NOT_CHARGED_KIND = "errored_not_charged"


def event_cost(event: UsageEvent) -> float:
    """The vendor's original cost when known, else the display cost."""
    if event.cost_info.original_cost:
        return event.cost_info.original_cost
    return event.cost or 0


def compute_stats(events: Sequence[UsageEvent], now: datetime | None = None) -> Stats:
    """Aggregate totals, per-model, per-kind and per-day counters."""
    stats = Stats(total_events=len(events))
    if now is not None:
        stats.timestamp = now

    for event in events:
        cost = event_cost(event)
        charged = event.kind != NOT_CHARGED_KIND
        max_mode = event.resolved_max_mode()

        stats.total_tokens += event.tokens
        stats.estimated_cost += cost
        if charged:
            stats.total_cost += cost
        if max_mode:
            stats.total_max_mode += 1

        by_model = stats.by_model.setdefault(event.model or "unknown", UsageAggregate())
        _accumulate(by_model, event, cost if charged else 0, max_mode)

        by_kind = stats.by_kind.setdefault(event.kind or "unknown", UsageAggregate())
        _accumulate(by_kind, event, cost, max_mode)

        day = event.date.astimezone(timezone.utc).date().isoformat()
        by_date = stats.by_date.setdefault(day, DailyAggregate())
        by_date.count += 1
        by_date.tokens += event.tokens
        if charged:
            by_date.cost += cost

    newest_first = sorted(events, key=lambda e: e.date, reverse=True)
    stats.recent_events = [_recent(e) for e in newest_first[:RECENT_EVENTS_LIMIT]]
    return stats


def _accumulate(agg: UsageAggregate, event: UsageEvent, cost: float, max_mode: bool) -> None:
    agg.count += 1
    agg.tokens += event.tokens
    agg.cost += cost
    agg.credits += event.credits or 0
    agg.input_tokens += event.token_usage.input_tokens
    agg.output_tokens += event.token_usage.output_tokens
    agg.cache_read_tokens += event.token_usage.cache_read_tokens
    agg.cache_write_tokens += event.token_usage.cache_write_tokens
    if max_mode:
        agg.max_mode_count += 1


def _recent(event: UsageEvent) -> RecentEvent:
    return RecentEvent(
        id=event.id,
        date=event.date,
        model=event.model,
        kind=event.kind,
        kind_display=event.kind_display,
        tokens=event.tokens,
        cost=event.cost,
        token_usage=event.token_usage,
        cost_info=event.cost_info,
        credits=event.credits,
        max_mode=event.resolved_max_mode(),
    )
