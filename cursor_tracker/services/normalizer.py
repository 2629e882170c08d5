"""Event normalizer — turns one raw vendor usage record into a UsageEvent.

The function is total: any missing or malformed field degrades to a default.
Only a record that is not a mapping at all is rejected (``None``), and the
caller filters those out.
"""

from __future__ import annotations

import logging
import random
import string
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from cursor_tracker.models import CostInfo, EventSource, TokenUsage, UsageEvent, from_epoch_ms, utcnow

logger = logging.getLogger(__name__)

# Timestamps before 2020-01-01 are vendor placeholders, not real dates.
MIN_PLAUSIBLE_TIMESTAMP_MS = 1_577_836_800_000

KIND_PREFIX = "USAGE_EVENT_KIND_"

# Vendor kind (without prefix) -> (slug, label)
KIND_TABLE: dict[str, tuple[str, str]] = {
    "INCLUDED_IN_PRO": ("included_pro", "Included in Pro"),
    "INCLUDED_IN_BUSINESS": ("included_business", "Included in Business"),
    "INCLUDED_IN_PRO_PLUS": ("included_pro_plus", "Included in Pro+"),
    "INCLUDED_IN_ULTRA": ("included_ultra", "Included in Ultra"),
    "ERRORED_NOT_CHARGED": ("errored_not_charged", "Errored, Not Charged"),
    "ABORTED_NOT_CHARGED": ("aborted_not_charged", "Aborted, Not Charged"),
    "USAGE_BASED": ("usage_based", "Usage Based"),
    "USER_API_KEY": ("user_api_key", "User API Key"),
}

UNKNOWN_KIND = ("unknown", "Unknown")

# Usage covered by the plan: always displayed as free.
INCLUDED_KINDS = frozenset({
    "CUSTOM_SUBSCRIPTION",
    "INCLUDED_IN_PRO",
    "INCLUDED_IN_BUSINESS",
    "INCLUDED_IN_PRO_PLUS",
    "INCLUDED_IN_ULTRA",
})

NOT_CHARGED_KINDS = frozenset({"ERRORED_NOT_CHARGED", "ABORTED_NOT_CHARGED"})

_ID_ALPHABET = string.ascii_lowercase + string.digits
_ID_SUFFIX_LENGTH = 9


def normalize_event(raw: Any, now: datetime | None = None) -> UsageEvent | None:
    """Build a UsageEvent from a raw vendor record, or None if unusable."""
    if not isinstance(raw, dict):
        logger.warning("Skipping usage record of type %s", type(raw).__name__)
        return None

    now = now or utcnow()
    vendor_kind = _vendor_kind(raw.get("kind"))

    token_usage = _parse_token_usage(raw.get("tokenUsage"))
    cost_info = _parse_cost_info(raw, vendor_kind)
    kind, kind_display = classify_kind(vendor_kind, raw.get("customSubscriptionName"))

    model = raw.get("model") or "auto"
    if model == "default":
        model = "auto"

    return UsageEvent(
        id=make_event_id(raw.get("timestamp")),
        date=parse_event_date(raw.get("timestamp"), now),
        model=str(model),
        kind=kind,
        kind_display=kind_display,
        tokens=token_usage.total_tokens,
        token_usage=token_usage,
        cost=cost_info.display_cost,
        cost_info=cost_info,
        credits=cost_info.requests_costs,
        max_mode=_parse_max_mode(raw),
        source=EventSource.API,
        raw_data=raw,
    )


def normalize_events(raw_events: Iterable[Any], now: datetime | None = None) -> list[UsageEvent]:
    """Normalize a batch, dropping (and logging) records that cannot be used."""
    events: list[UsageEvent] = []
    for raw in raw_events:
        try:
            event = normalize_event(raw, now)
        except Exception:
            logger.exception("Failed to normalize usage record")
            continue
        if event is not None:
            events.append(event)
    return events


def make_event_id(timestamp: Any) -> str:
    """``<timestamp>_<random suffix>`` — the suffix changes on every fetch."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=_ID_SUFFIX_LENGTH))
    return f"{'' if timestamp is None else timestamp}_{suffix}"


def parse_event_date(timestamp: Any, now: datetime) -> datetime:
    """Vendor epoch-millis timestamp -> datetime, falling back to ``now``."""
    try:
        millis = int(timestamp)
    except (TypeError, ValueError):
        return now
    if millis <= MIN_PLAUSIBLE_TIMESTAMP_MS:
        return now
    try:
        return from_epoch_ms(millis)
    except (OverflowError, OSError, ValueError):
        return now


def classify_kind(vendor_kind: str, subscription_name: Any = None) -> tuple[str, str]:
    """Map a vendor kind (without prefix) to its (slug, label) pair."""
    if vendor_kind == "CUSTOM_SUBSCRIPTION":
        if subscription_name == "pro-free-trial":
            return "pro-free-trial", "Pro Free Trial"
        if subscription_name == "free":
            return "free", "Free"
        return "custom_subscription", subscription_name or "Custom Subscription"
    return KIND_TABLE.get(vendor_kind, UNKNOWN_KIND)


def _vendor_kind(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return value.removeprefix(KIND_PREFIX)


def _parse_token_usage(value: Any) -> TokenUsage:
    if not isinstance(value, dict):
        return TokenUsage()
    usage = TokenUsage(
        input_tokens=_as_int(value.get("inputTokens")),
        output_tokens=_as_int(value.get("outputTokens")),
        cache_read_tokens=_as_int(value.get("cacheReadTokens")),
        cache_write_tokens=_as_int(value.get("cacheWriteTokens")),
    )
    usage.total_tokens = (
        usage.input_tokens
        + usage.output_tokens
        + usage.cache_read_tokens
        + usage.cache_write_tokens
    )
    return usage


def _parse_cost_info(raw: dict, vendor_kind: str) -> CostInfo:
    token_usage = raw.get("tokenUsage") if isinstance(raw.get("tokenUsage"), dict) else {}
    info = CostInfo(
        total_cents=_as_float(token_usage.get("totalCents")),
        requests_costs=_as_float(raw.get("requestsCosts")),
        # The vendor sends "-" when nothing was billed on usage.
        usage_based_costs=_as_float(raw.get("usageBasedCosts")),
    )
    info.original_cost = info.total_cents / 100

    if vendor_kind in INCLUDED_KINDS:
        info.is_included = True
        info.display_cost = 0
    elif vendor_kind in NOT_CHARGED_KINDS:
        info.is_free = True
        info.display_cost = 0
    elif info.total_cents > 0:
        info.display_cost = info.total_cents / 100
    elif info.usage_based_costs > 0:
        info.display_cost = info.usage_based_costs
    elif info.requests_costs > 0:
        info.display_cost = info.requests_costs
    return info


def _parse_max_mode(raw: dict) -> bool:
    if raw.get("maxMode") is not None:
        return bool(raw["maxMode"])
    details = raw.get("details")
    if isinstance(details, dict):
        composer = details.get("toolCallComposer")
        if isinstance(composer, dict) and composer.get("maxMode") is not None:
            return bool(composer["maxMode"])
    return False


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _as_int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0
