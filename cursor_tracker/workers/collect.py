"""Collection worker task — one pipeline run inside the arq worker."""

from __future__ import annotations

import logging

from cursor_tracker.services.session import TrackerError
from cursor_tracker.workers.tracker import UsageTracker

logger = logging.getLogger(__name__)


async def collect_usage(ctx: dict) -> dict:
    """ARQ task: run one collection cycle with the worker's tracker.

    Args:
        ctx: ARQ worker context; ``ctx["tracker"]`` is set up on worker startup.

    Returns:
        dict with the cycle's counters, or an ``error`` key. Skipped while the
        web process collects on its own, so the dataset keeps a single writer.
    """
    if ctx.get("web_collects"):
        logger.warning("Web process collects (COLLECT_ON_STARTUP=true), skipping worker collection")
        return {"skipped": True}

    tracker: UsageTracker = ctx["tracker"]
    try:
        result = await tracker.collect_once()
    except TrackerError as exc:
        logger.error("Collection failed: %s", exc)
        return {"error": str(exc)}
    except Exception as exc:
        logger.exception("Collection failed")
        return {"error": str(exc)[:500]}

    if result is None:
        return {"skipped": True}
    return {
        "strategy": str(result.strategy),
        "fetched": result.fetched,
        "new": result.new_count,
        "updated": result.updated_count,
        "written": result.written,
    }
