"""Tests for raw record normalization."""

import re

from conftest import BASE_TS, raw_event

from cursor_tracker.models import EventSource, from_epoch_ms, utcnow
from cursor_tracker.services.normalizer import (
    classify_kind,
    make_event_id,
    normalize_event,
    normalize_events,
    parse_event_date,
)


def test_usage_based_record():
    event = normalize_event(raw_event(BASE_TS, input_tokens=1200, output_tokens=300, total_cents=42.5))

    assert re.fullmatch(rf"{BASE_TS}_[a-z0-9]{{9}}", event.id)
    assert event.date == from_epoch_ms(BASE_TS)
    assert event.model == "claude-4-sonnet"
    assert event.kind == "usage_based"
    assert event.kind_display == "Usage Based"
    assert event.tokens == 1500
    assert event.token_usage.input_tokens == 1200
    assert event.cost == 0.425
    assert event.cost_info.original_cost == 0.425
    assert event.credits == 1.0
    assert event.source == EventSource.API
    assert event.raw_data["timestamp"] == str(BASE_TS)


def test_total_tokens_include_cache():
    record = raw_event(BASE_TS)
    record["tokenUsage"].update(cacheReadTokens=1000, cacheWriteTokens=500)
    event = normalize_event(record)
    assert event.tokens == 100 + 50 + 1000 + 500
    assert event.token_usage.total_tokens == event.tokens


def test_included_kind_is_free_even_with_cost():
    event = normalize_event(raw_event(BASE_TS, kind="USAGE_EVENT_KIND_INCLUDED_IN_PRO", total_cents=80))
    assert event.kind == "included_pro"
    assert event.cost == 0
    assert event.cost_info.is_included is True
    assert event.cost_info.display_cost == 0
    # The vendor's figure is kept for estimates
    assert event.cost_info.original_cost == 0.8


def test_errored_not_charged():
    event = normalize_event(raw_event(BASE_TS, kind="USAGE_EVENT_KIND_ERRORED_NOT_CHARGED", total_cents=30))
    assert event.kind == "errored_not_charged"
    assert event.kind_display == "Errored, Not Charged"
    assert event.cost_info.is_free is True
    assert event.cost == 0


def test_cost_falls_back_to_usage_based_then_requests():
    record = raw_event(BASE_TS, total_cents=0, requests_costs=2)
    record["usageBasedCosts"] = 0.75
    assert normalize_event(record).cost == 0.75

    record = raw_event(BASE_TS, total_cents=0, requests_costs=2)
    assert normalize_event(record).cost == 2
    assert normalize_event(record).cost_info.usage_based_costs == 0


def test_no_cost_fields_at_all():
    event = normalize_event({"timestamp": str(BASE_TS)})
    assert event.cost == 0
    assert event.tokens == 0
    assert event.model == "auto"
    assert event.kind == "unknown"
    assert event.kind_display == "Unknown"


def test_default_model_becomes_auto():
    assert normalize_event(raw_event(BASE_TS, model="default")).model == "auto"
    assert normalize_event(raw_event(BASE_TS, model="")).model == "auto"


def test_custom_subscription_kinds():
    assert classify_kind("CUSTOM_SUBSCRIPTION", "pro-free-trial") == ("pro-free-trial", "Pro Free Trial")
    assert classify_kind("CUSTOM_SUBSCRIPTION", "free") == ("free", "Free")
    assert classify_kind("CUSTOM_SUBSCRIPTION", "team-plan") == ("custom_subscription", "team-plan")
    assert classify_kind("CUSTOM_SUBSCRIPTION") == ("custom_subscription", "Custom Subscription")


def test_custom_subscription_is_included():
    record = raw_event(BASE_TS, kind="USAGE_EVENT_KIND_CUSTOM_SUBSCRIPTION", total_cents=99)
    record["customSubscriptionName"] = "free"
    event = normalize_event(record)
    assert event.kind == "free"
    assert event.cost == 0
    assert event.cost_info.is_included is True


def test_unknown_kind():
    assert classify_kind("SOMETHING_NEW") == ("unknown", "Unknown")


def test_max_mode_from_top_level_and_details():
    assert normalize_event(raw_event(BASE_TS, maxMode=True)).max_mode is True
    nested = raw_event(BASE_TS, details={"toolCallComposer": {"maxMode": True}})
    assert normalize_event(nested).max_mode is True
    assert normalize_event(raw_event(BASE_TS)).max_mode is False


def test_placeholder_timestamp_uses_now():
    now = utcnow()
    assert parse_event_date("0", now) == now
    assert parse_event_date("1577836800000", now) == now
    assert parse_event_date("not-a-number", now) == now
    assert parse_event_date(None, now) == now
    assert parse_event_date(str(BASE_TS), now) == from_epoch_ms(BASE_TS)


def test_ids_differ_between_fetches():
    first, second = make_event_id(BASE_TS), make_event_id(BASE_TS)
    assert first.startswith(f"{BASE_TS}_")
    assert second.startswith(f"{BASE_TS}_")
    assert first != second


def test_normalize_events_drops_unusable_records():
    events = normalize_events([raw_event(BASE_TS), "garbage", None, 42, raw_event(BASE_TS + 1)])
    assert len(events) == 2


def test_non_numeric_fields_degrade_to_zero():
    record = raw_event(BASE_TS)
    record["requestsCosts"] = "n/a"
    record["tokenUsage"]["inputTokens"] = None
    record["tokenUsage"]["totalCents"] = "-"
    event = normalize_event(record)
    assert event.credits == 0
    assert event.token_usage.input_tokens == 0
    assert event.cost == 0
