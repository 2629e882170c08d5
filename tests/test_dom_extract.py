"""Tests for usage-table extraction from dashboard HTML."""

from cursor_tracker.models import EventSource, to_epoch_ms, utcnow
from cursor_tracker.services.dom_extract import extract_usage_rows, parse_cost, parse_tokens

DASHBOARD_HTML = """
<html><body>
<table>
  <thead><tr><th>Date</th><th>Model</th><th>Kind</th><th>Tokens</th><th>Cost</th></tr></thead>
  <tbody>
    <tr>
      <td>Nov 14, 10:12 PM</td><td>claude-4-sonnet</td><td>Included</td>
      <td><span>12.5K</span></td><td>$0.00</td>
    </tr>
    <tr>
      <td>Nov 14, 09:40 PM</td><td>gpt-5</td><td>Usage-based</td>
      <td>1.2M</td><td>$3.40</td>
    </tr>
    <tr><td>Totals</td><td>-</td></tr>
  </tbody>
</table>
</body></html>
"""


def test_extracts_rows_with_enough_cells():
    now = utcnow()
    events = extract_usage_rows(DASHBOARD_HTML, now=now)

    assert len(events) == 2
    first, second = events
    assert first.id == f"dom_{to_epoch_ms(now)}_0"
    assert first.model == "claude-4-sonnet"
    assert first.kind_display == "Included"
    assert first.kind == "included"
    assert first.tokens == 12_500
    assert first.cost == 0
    assert first.source == EventSource.DOM
    assert first.date == now

    assert second.model == "gpt-5"
    assert second.tokens == 1_200_000
    assert second.cost == 3.4


def test_header_only_table_yields_nothing():
    html = "<table><tr><th>Date</th><th>Model</th></tr></table>"
    assert extract_usage_rows(html) == []


def test_page_without_table():
    assert extract_usage_rows("<html><body><p>Sign in</p></body></html>") == []


def test_parse_tokens():
    assert parse_tokens("950") == 950
    assert parse_tokens("3k") == 3000
    assert parse_tokens("2.5M tokens") == 2_500_000
    assert parse_tokens("1B") == 1_000_000_000
    assert parse_tokens("-") == 0
    assert parse_tokens("") == 0


def test_parse_cost():
    assert parse_cost("$1.25") == 1.25
    assert parse_cost("0.4") == 0.4
    assert parse_cost("Included") == 0
