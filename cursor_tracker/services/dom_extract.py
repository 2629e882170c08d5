"""Usage-table extraction from the dashboard HTML using Python stdlib.

Degraded fallback for when the JSON API returns nothing: each table row with
at least five cells (date, model, kind, tokens, cost) becomes a minimal
``source="DOM"`` event.
"""

import re
from datetime import datetime
from html.parser import HTMLParser

from cursor_tracker.models import EventSource, UsageEvent, to_epoch_ms, utcnow

MIN_CELLS = 5

_TOKENS_RE = re.compile(r"(\d+(?:\.\d+)?)\s*([KMB]?)", re.IGNORECASE)
_COST_RE = re.compile(r"\$?(\d+(?:\.\d+)?)")
_MULTIPLIERS = {"": 1, "K": 1_000, "M": 1_000_000, "B": 1_000_000_000}


class _TableRowExtractor(HTMLParser):
    """Collects the text of every ``<td>`` grouped by ``<tr>``."""

    def __init__(self) -> None:
        super().__init__()
        self.rows: list[list[str]] = []
        self._row: list[str] | None = None
        self._cell: list[str] | None = None

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag == "tr":
            self._row = []
        elif tag == "td" and self._row is not None:
            self._cell = []

    def handle_endtag(self, tag: str) -> None:
        if tag == "td" and self._row is not None and self._cell is not None:
            self._row.append(" ".join("".join(self._cell).split()))
            self._cell = None
        elif tag == "tr" and self._row is not None:
            self.rows.append(self._row)
            self._row = None

    def handle_data(self, data: str) -> None:
        if self._cell is not None:
            self._cell.append(data)


def parse_tokens(text: str) -> int:
    """``"12.5K"`` -> 12500, ``"3M"`` -> 3000000."""
    match = _TOKENS_RE.search(text or "")
    if not match:
        return 0
    return round(float(match.group(1)) * _MULTIPLIERS[match.group(2).upper()])


def parse_cost(text: str) -> float:
    match = _COST_RE.search(text or "")
    return float(match.group(1)) if match else 0.0


def extract_usage_rows(html: str, now: datetime | None = None) -> list[UsageEvent]:
    """Turn the dashboard usage table into minimal events."""
    now = now or utcnow()
    parser = _TableRowExtractor()
    parser.feed(html)
    parser.close()

    stamp = to_epoch_ms(now)
    events: list[UsageEvent] = []
    for index, cells in enumerate(parser.rows):
        if len(cells) < MIN_CELLS:
            continue
        date_text, model_text, kind_text, tokens_text, cost_text = cells[:MIN_CELLS]
        if not date_text or not model_text:
            continue
        cost = parse_cost(cost_text)
        events.append(
            UsageEvent(
                id=f"dom_{stamp}_{index}",
                date=now,
                model=model_text,
                kind=kind_text.lower(),
                kind_display=kind_text,
                tokens=parse_tokens(tokens_text),
                cost=cost,
                source=EventSource.DOM,
            )
        )
    return events
