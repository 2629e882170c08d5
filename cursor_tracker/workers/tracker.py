"""Periodic collection — runs the pipeline on a timer, one cycle at a time."""

from __future__ import annotations

import asyncio
import contextlib
import logging

from cursor_tracker.services.collector import CollectionResult, UsageCollector

logger = logging.getLogger(__name__)


class UsageTracker:
    """Owns the periodic loop. Created by the entry point and stopped by it.

    A tick that fires while a cycle is still running is skipped, so the
    dataset file never has two writers.
    """

    def __init__(self, collector: UsageCollector, interval: float, shutdown_grace: float = 10.0) -> None:
        self.collector = collector
        self.interval = interval
        self.shutdown_grace = shutdown_grace
        self._busy = False
        self._stopping = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def is_busy(self) -> bool:
        return self._busy

    async def collect_once(self) -> CollectionResult | None:
        """Run one cycle unless one is in flight. Errors propagate."""
        if self._busy:
            logger.warning("Previous collection still running, skipping this one")
            return None
        self._busy = True
        try:
            return await self.collector.collect()
        finally:
            self._busy = False

    def start(self) -> None:
        if self.is_running:
            logger.warning("Tracker is already running")
            return
        self._stopping.clear()
        self._task = asyncio.create_task(self._run(), name="usage-collection")
        logger.info("Periodic collection set up (interval: %.0fs)", self.interval)

    async def stop(self) -> None:
        """Stop scheduling; give the in-flight cycle a grace period, then abandon it."""
        if self._task is None:
            return
        self._stopping.set()
        try:
            await asyncio.wait_for(asyncio.shield(self._task), timeout=self.shutdown_grace)
        except asyncio.TimeoutError:
            logger.warning("Collection did not finish within %.0fs, cancelling", self.shutdown_grace)
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self._task = None
        logger.info("Tracker stopped")

    async def _run(self) -> None:
        while not self._stopping.is_set():
            try:
                await self.collect_once()
            except Exception:
                logger.exception("Periodic collection failed")
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval)
