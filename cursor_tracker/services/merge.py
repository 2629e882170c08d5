"""Merge engine — reconciles a freshly fetched batch with the stored events.

Event ids are ``<timestamp>_<random suffix>`` and the suffix is re-rolled on
every fetch, so two ids for the same vendor event differ. Everything here
matches events on the timestamp prefix instead. Two distinct events recorded
in the same millisecond are therefore indistinguishable; the vendor API does
not expose a stable identifier to do better.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from cursor_tracker.models import UsageEvent, utcnow

logger = logging.getLogger(__name__)

DEFAULT_ACTIVE_WINDOW_HOURS = 24
DEFAULT_MAX_ACTIVE_EVENTS = 100


@dataclass
class MergeOutcome:
    """Result of an incremental merge."""
    events: list[UsageEvent] = field(default_factory=list)
    new_count: int = 0
    updated_count: int = 0

    @property
    def changed(self) -> bool:
        return self.new_count > 0 or self.updated_count > 0


def matches_timestamp(event_id: str, timestamp: object) -> bool:
    """True when ``event_id`` starts with the vendor ``timestamp``."""
    if timestamp is None or timestamp == "":
        return False
    return event_id.startswith(str(timestamp))


def sort_newest_first(events: Sequence[UsageEvent]) -> list[UsageEvent]:
    return sorted(events, key=lambda e: e.date, reverse=True)


def select_active_events(
    events: Sequence[UsageEvent],
    now: datetime | None = None,
    window_hours: float = DEFAULT_ACTIVE_WINDOW_HOURS,
    max_count: int = DEFAULT_MAX_ACTIVE_EVENTS,
) -> list[UsageEvent]:
    """The most recent events still likely to be amended server-side."""
    now = now or utcnow()
    cutoff = now - timedelta(hours=window_hours)
    recent = [e for e in events if e.date >= cutoff]
    return sort_newest_first(recent)[:max_count]


def is_event_updated(existing: UsageEvent, incoming: UsageEvent) -> bool:
    """Whether the vendor changed anything we track since ``existing`` was stored."""
    for name in ("credits", "tokens", "cost", "kind", "model"):
        if getattr(existing, name) != getattr(incoming, name):
            return True

    old_usage, new_usage = existing.token_usage, incoming.token_usage
    for name in ("input_tokens", "output_tokens", "cache_read_tokens", "cache_write_tokens"):
        if getattr(old_usage, name) != getattr(new_usage, name):
            return True

    old_cost, new_cost = existing.cost_info, incoming.cost_info
    for name in ("original_cost", "discounted_cost", "discount"):
        if getattr(old_cost, name) != getattr(new_cost, name):
            return True

    return False


def merge_incremental(
    existing: Sequence[UsageEvent],
    incoming: Sequence[UsageEvent],
    now: datetime | None = None,
    window_hours: float = DEFAULT_ACTIVE_WINDOW_HOURS,
    max_active: int = DEFAULT_MAX_ACTIVE_EVENTS,
) -> MergeOutcome:
    """Replace amended active events in place, then add unseen ones.

    Returns the merged list sorted newest-first. When nothing is new or
    updated, ``outcome.changed`` is False and the caller should skip the write.
    """
    merged = list(existing)
    outcome = MergeOutcome()

    active_ids = {e.id for e in select_active_events(existing, now, window_hours, max_active)}
    for index, current in enumerate(merged):
        if current.id not in active_ids:
            continue
        candidate = next(
            (e for e in incoming if matches_timestamp(current.id, e.timestamp_prefix)),
            None,
        )
        if candidate is not None and is_event_updated(current, candidate):
            merged[index] = candidate
            outcome.updated_count += 1

    known_ids = {e.id for e in merged}
    known_prefixes = {e.timestamp_prefix for e in merged}
    added: list[UsageEvent] = []
    for event in incoming:
        if event.id in known_ids or event.timestamp_prefix in known_prefixes:
            continue
        added.append(event)
        known_ids.add(event.id)
        known_prefixes.add(event.timestamp_prefix)
    outcome.new_count = len(added)

    if outcome.changed:
        logger.info(
            "Merging %d new and %d updated events (from %d fetched)",
            outcome.new_count, outcome.updated_count, len(incoming),
        )
    outcome.events = sort_newest_first(added + merged)
    return outcome
