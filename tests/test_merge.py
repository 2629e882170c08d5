"""Tests for timestamp-prefix matching and the incremental merge."""

from datetime import timedelta

from conftest import BASE_TS, MINUTE_MS

from cursor_tracker.models import CostInfo, TokenUsage, UsageEvent, from_epoch_ms
from cursor_tracker.services.merge import (
    is_event_updated,
    matches_timestamp,
    merge_incremental,
    select_active_events,
    sort_newest_first,
)

NOW = from_epoch_ms(BASE_TS) + timedelta(hours=1)


def _event(ts: int, suffix: str = "aaaaaaaaa", **fields) -> UsageEvent:
    return UsageEvent(id=f"{ts}_{suffix}", date=from_epoch_ms(ts), **fields)


def test_matches_timestamp():
    assert matches_timestamp(f"{BASE_TS}_abc123xyz", str(BASE_TS))
    assert matches_timestamp(f"{BASE_TS}_abc123xyz", BASE_TS)
    assert not matches_timestamp(f"{BASE_TS}_abc123xyz", str(BASE_TS + 1))
    assert not matches_timestamp(f"{BASE_TS}_abc123xyz", None)
    assert not matches_timestamp(f"{BASE_TS}_abc123xyz", "")


def test_select_active_events_window_and_cap():
    old = _event(BASE_TS - 2 * 24 * 3600 * 1000)
    recent = [_event(BASE_TS + i * MINUTE_MS) for i in range(5)]

    active = select_active_events([old, *recent], NOW, window_hours=24, max_count=3)
    assert [e.id for e in active] == [e.id for e in sort_newest_first(recent)[:3]]


def test_update_detection_on_credits():
    assert is_event_updated(_event(BASE_TS, credits=1), _event(BASE_TS, credits=2))


def test_update_detection_ignores_id():
    existing = _event(BASE_TS, "aaaaaaaaa", credits=1, token_usage=TokenUsage(input_tokens=5))
    incoming = _event(BASE_TS, "bbbbbbbbb", credits=1, token_usage=TokenUsage(input_tokens=5))
    assert not is_event_updated(existing, incoming)


def test_update_detection_on_nested_fields():
    base = _event(BASE_TS)
    assert is_event_updated(base, _event(BASE_TS, token_usage=TokenUsage(cache_read_tokens=10)))
    assert is_event_updated(base, _event(BASE_TS, cost_info=CostInfo(original_cost=0.5)))
    assert is_event_updated(base, _event(BASE_TS, cost_info=CostInfo(discount=0.1)))
    assert not is_event_updated(base, _event(BASE_TS, cost_info=CostInfo(is_free=True)))


def test_merge_replaces_updated_active_event_in_place():
    existing = [_event(BASE_TS + MINUTE_MS), _event(BASE_TS, credits=1)]
    incoming = [_event(BASE_TS, "zzzzzzzzz", credits=3)]

    outcome = merge_incremental(existing, incoming, NOW)

    assert outcome.changed
    assert outcome.updated_count == 1
    assert outcome.new_count == 0
    assert len(outcome.events) == 2
    assert outcome.events[1].id == f"{BASE_TS}_zzzzzzzzz"
    assert outcome.events[1].credits == 3


def test_merge_does_not_duplicate_refetched_event():
    existing = [_event(BASE_TS, credits=1)]
    incoming = [_event(BASE_TS, "zzzzzzzzz", credits=1)]

    outcome = merge_incremental(existing, incoming, NOW)

    assert not outcome.changed
    assert len(outcome.events) == 1
    assert outcome.events[0].id == f"{BASE_TS}_aaaaaaaaa"


def test_merge_adds_new_events_sorted():
    existing = [_event(BASE_TS)]
    incoming = [_event(BASE_TS + 2 * MINUTE_MS, "new2"), _event(BASE_TS + MINUTE_MS, "new1")]

    outcome = merge_incremental(existing, incoming, NOW)

    assert outcome.new_count == 2
    assert [e.id for e in outcome.events] == [
        f"{BASE_TS + 2 * MINUTE_MS}_new2",
        f"{BASE_TS + MINUTE_MS}_new1",
        f"{BASE_TS}_aaaaaaaaa",
    ]


def test_inactive_events_are_never_replaced():
    old_ts = BASE_TS - 3 * 24 * 3600 * 1000
    existing = [_event(old_ts, credits=1)]
    incoming = [_event(old_ts, "zzzzzzzzz", credits=9)]

    outcome = merge_incremental(existing, incoming, NOW)

    assert not outcome.changed
    assert outcome.events[0].credits == 1


def test_same_millisecond_events_collapse():
    """Known limitation: distinct events sharing a millisecond are merged into one."""
    existing = [_event(BASE_TS - MINUTE_MS)]
    incoming = [
        _event(BASE_TS, "first0000", model="gpt-5"),
        _event(BASE_TS, "second000", model="claude-4-sonnet"),
    ]

    outcome = merge_incremental(existing, incoming, NOW)

    assert outcome.new_count == 1
    assert len(outcome.events) == 2
