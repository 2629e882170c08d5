"""Adaptive page-size controller for the paginated fetcher."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

MIN_PAGE_SIZE = 100
MAX_PAGE_SIZE = 1000

FAST_RESPONSE_MS = 1000
SLOW_RESPONSE_MS = 3000
GROWTH_FACTOR = 1.5
SHRINK_FACTOR = 0.7


class AdaptivePageSize:
    """Grows the page size on fast, full pages and shrinks it on slow ones."""

    def __init__(
        self,
        initial: int,
        minimum: int = MIN_PAGE_SIZE,
        maximum: int = MAX_PAGE_SIZE,
    ) -> None:
        self.minimum = minimum
        self.maximum = maximum
        self.size = min(max(initial, minimum), maximum)

    def observe(self, latency_ms: float, event_count: int, requested_size: int) -> int:
        """Feed one page's latency and size; return the (possibly new) page size."""
        current = self.size
        if latency_ms < FAST_RESPONSE_MS and event_count == requested_size:
            new_size = min(current * GROWTH_FACTOR, self.maximum)
        elif latency_ms > SLOW_RESPONSE_MS:
            new_size = max(current * SHRINK_FACTOR, self.minimum)
        else:
            return current

        self.size = int(round(new_size))
        if self.size != current:
            logger.info("Adaptive page size: %d -> %d", current, self.size)
        return self.size
