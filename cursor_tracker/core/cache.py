"""In-memory TTL cache for the dashboard read endpoints.

Dashboard clients poll the same documents over and over; identical reads
within a short window are served from memory instead of re-reading the JSON
files. Every publish bumps a generation counter, so an entry stored by a read
that raced with a write is never served after the write.
"""

import time
from collections.abc import Awaitable, Callable, Hashable
from typing import Any, TypeVar

T = TypeVar("T")

_cache: dict[Hashable, tuple[int, float, Any]] = {}
_generation = 0

# Default TTL in seconds
DEFAULT_TTL = 30


def get(key: Hashable, ttl: float = DEFAULT_TTL) -> Any | None:
    """Return the cached value for this generation, else None."""
    entry = _cache.get(key)
    if entry is None:
        return None
    generation, stored_at, value = entry
    if generation != _generation or time.monotonic() - stored_at > ttl:
        _cache.pop(key, None)
        return None
    return value


def put(key: Hashable, value: Any, generation: int | None = None) -> None:
    """Store a value, tagged with the generation it was read under."""
    _cache[key] = (
        _generation if generation is None else generation,
        time.monotonic(),
        value,
    )


async def get_or_load(
    key: Hashable,
    loader: Callable[[], Awaitable[T]],
    ttl: float = DEFAULT_TTL,
) -> T:
    """Serve ``key`` from the cache or await ``loader`` and remember the result.

    ``None`` results are not cached so a missing document shows up as soon as
    the first collection writes it.
    """
    cached = get(key, ttl)
    if cached is not None:
        return cached
    generation = _generation
    value = await loader()
    if value is not None:
        put(key, value, generation)
    return value


def clear() -> None:
    """Drop every entry and start a new generation."""
    global _generation
    _generation += 1
    _cache.clear()
