"""JSON document store — the usage dataset, derived stats and user info.

All three documents live under one data directory. Every write replaces the
whole document (temp file + rename); there is no locking beyond the single
collection pipeline per process.
"""

from __future__ import annotations

import json
import logging
import os
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os

from cursor_tracker.models import (
    DEFAULT_PAGE_SIZE,
    Stats,
    SyncMetadata,
    SyncStrategy,
    UsageDataset,
    UsageEvent,
    to_epoch_ms,
    utcnow,
)
from cursor_tracker.services.merge import (
    DEFAULT_ACTIVE_WINDOW_HOURS,
    DEFAULT_MAX_ACTIVE_EVENTS,
    merge_incremental,
    sort_newest_first,
)
from cursor_tracker.services.planner import SyncState
from cursor_tracker.services.stats import compute_stats

logger = logging.getLogger(__name__)

USAGE_DATA_FILE = "usage_data.json"
STATS_FILE = "stats.json"
USER_INFO_FILE = "user_info.json"

# Fields the vendor returns that have no business on disk.
PRIVATE_USER_FIELDS = ("paymentId", "sub")


@dataclass
class SaveResult:
    """What a merge did to the stored dataset."""
    written: bool
    strategy: SyncStrategy
    total_events: int
    new_count: int = 0
    updated_count: int = 0


class DataStore:
    def __init__(
        self,
        data_dir: str | Path,
        active_window_hours: float = DEFAULT_ACTIVE_WINDOW_HOURS,
        max_active_events: int = DEFAULT_MAX_ACTIVE_EVENTS,
        default_page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self.data_dir = Path(data_dir)
        self.active_window_hours = active_window_hours
        self.max_active_events = max_active_events
        self.default_page_size = default_page_size

    @property
    def usage_path(self) -> Path:
        return self.data_dir / USAGE_DATA_FILE

    @property
    def stats_path(self) -> Path:
        return self.data_dir / STATS_FILE

    @property
    def user_info_path(self) -> Path:
        return self.data_dir / USER_INFO_FILE

    async def initialize(self) -> None:
        await aiofiles.os.makedirs(self.data_dir, exist_ok=True)
        logger.info("Data directory initialized: %s", self.data_dir.resolve())

    # ── Usage dataset ──────────────────────────────────────────

    async def load_dataset(self) -> UsageDataset | None:
        """The stored dataset, or None before the first collection."""
        data = await self._read_json(self.usage_path)
        if data is None:
            return None
        return UsageDataset.model_validate(data)

    async def load_sync_state(self) -> SyncState | None:
        dataset = await self.load_dataset()
        if dataset is None:
            return None
        return SyncState(last_sync_date=dataset.last_sync_date, metadata=dataset.sync_metadata)

    async def save_page_size(self, page_size: int) -> None:
        """Record the adaptive page size; a no-op until a dataset exists."""
        dataset = await self.load_dataset()
        if dataset is None or dataset.sync_metadata.adaptive_page_size == page_size:
            return
        dataset.sync_metadata.adaptive_page_size = page_size
        await self._write_json(self.usage_path, dataset.to_json_dict())

    async def merge_events(
        self,
        events: Sequence[UsageEvent],
        incremental: bool,
        page_size: int | None = None,
        now: datetime | None = None,
    ) -> SaveResult:
        """Merge a normalized batch into the dataset and refresh the stats.

        Full syncs (or the first ever sync) replace the dataset wholesale and
        set the watermark to the newest event. Incremental syncs replace
        amended active events, add unseen ones and set the watermark to now;
        when nothing changed the dataset is left untouched.
        """
        now = now or utcnow()
        existing = await self.load_dataset()

        if existing is None or not incremental:
            ordered = sort_newest_first(events)
            watermark = ordered[0].date if ordered else now
            metadata = SyncMetadata(
                last_successful_sync=now,
                adaptive_page_size=self._page_size(page_size, existing),
                sync_strategy=SyncStrategy.INCREMENTAL if incremental else SyncStrategy.FULL,
            )
            await self._save_dataset(ordered, str(to_epoch_ms(watermark)), metadata, now)
            return SaveResult(
                written=True,
                strategy=metadata.sync_strategy,
                total_events=len(ordered),
                new_count=len(ordered),
            )

        outcome = merge_incremental(
            existing.events,
            events,
            now=now,
            window_hours=self.active_window_hours,
            max_active=self.max_active_events,
        )
        if not outcome.changed:
            logger.info("No new or updated events to merge")
            return SaveResult(
                written=False,
                strategy=SyncStrategy.INCREMENTAL,
                total_events=len(existing.events),
            )

        metadata = SyncMetadata(
            last_successful_sync=now,
            adaptive_page_size=self._page_size(page_size, existing),
            sync_strategy=SyncStrategy.INCREMENTAL,
        )
        await self._save_dataset(outcome.events, str(to_epoch_ms(now)), metadata, now)
        return SaveResult(
            written=True,
            strategy=SyncStrategy.INCREMENTAL,
            total_events=len(outcome.events),
            new_count=outcome.new_count,
            updated_count=outcome.updated_count,
        )

    async def cleanup_old_events(self, days_to_keep: int = 30, now: datetime | None = None) -> int:
        """Drop events older than ``days_to_keep``; returns how many were removed.

        The watermark is kept: retention must not make the next incremental
        sync re-request the window it already has.
        """
        dataset = await self.load_dataset()
        if dataset is None or not dataset.events:
            return 0
        cutoff = (now or utcnow()) - timedelta(days=days_to_keep)
        kept = [e for e in dataset.events if e.date >= cutoff]
        removed = len(dataset.events) - len(kept)
        if removed:
            logger.info("Cleaning up %d events older than %d days", removed, days_to_keep)
            await self._save_dataset(kept, dataset.last_sync_date, dataset.sync_metadata, now or utcnow())
        return removed

    # ── Stats ──────────────────────────────────────────────────

    async def update_stats(self, events: Sequence[UsageEvent]) -> Stats:
        stats = compute_stats(events)
        await self._write_json(self.stats_path, stats.to_json_dict())
        logger.info("Statistics updated (%d events)", stats.total_events)
        return stats

    async def load_stats(self) -> Stats | None:
        """Stats computed from the dataset without writing; the stats file only when no dataset exists."""
        dataset = await self.load_dataset()
        if dataset is not None:
            return compute_stats(dataset.events)
        data = await self._read_json(self.stats_path)
        return Stats.model_validate(data) if data is not None else None

    # ── User info ──────────────────────────────────────────────

    async def save_user_info(self, user_info: dict[str, Any]) -> None:
        if not isinstance(user_info, dict) or not user_info:
            logger.warning("Refusing to save empty user info")
            return
        document = {
            "timestamp": utcnow().isoformat(),
            **{k: v for k, v in user_info.items() if k not in PRIVATE_USER_FIELDS},
        }
        await self._write_json(self.user_info_path, document)
        logger.info("User info saved to %s", self.user_info_path)

    async def load_user_info(self) -> dict[str, Any] | None:
        return await self._read_json(self.user_info_path)

    # ── Internals ──────────────────────────────────────────────

    def _page_size(self, page_size: int | None, existing: UsageDataset | None) -> int:
        if page_size:
            return page_size
        if existing is not None:
            return existing.sync_metadata.adaptive_page_size
        return self.default_page_size

    async def _save_dataset(
        self,
        events: Sequence[UsageEvent],
        last_sync_date: str | None,
        metadata: SyncMetadata,
        now: datetime,
    ) -> None:
        dataset = UsageDataset(
            timestamp=now,
            last_sync_date=last_sync_date,
            total_events=len(events),
            sync_metadata=metadata,
            events=list(events),
        )
        await self._write_json(self.usage_path, dataset.to_json_dict())
        logger.info("Saved %d usage events to %s", len(events), self.usage_path)
        await self.update_stats(dataset.events)

    async def _read_json(self, path: Path) -> Any | None:
        try:
            async with aiofiles.open(path, encoding="utf-8") as fh:
                content = await fh.read()
        except FileNotFoundError:
            return None
        if not content.strip():
            return None
        return json.loads(content)

    async def _write_json(self, path: Path, document: Any) -> None:
        await aiofiles.os.makedirs(path.parent, exist_ok=True)
        # Unique per write: concurrent writers must not rename each other's file.
        tmp_path = path.with_name(f".{path.name}.{os.getpid()}.{uuid.uuid4().hex}.tmp")
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as fh:
            await fh.write(json.dumps(document, indent=2, ensure_ascii=False))
        await aiofiles.os.replace(tmp_path, path)
