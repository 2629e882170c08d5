"""ARQ worker entrypoint — collection on a cron schedule, out of the web process."""

from arq import cron
from arq.connections import RedisSettings

from cursor_tracker.core.config import get_settings
from cursor_tracker.services.collector import UsageCollector
from cursor_tracker.services.session import CookieSession
from cursor_tracker.services.storage import DataStore
from cursor_tracker.workers.collect import collect_usage
from cursor_tracker.workers.tracker import UsageTracker


def _redis_settings() -> RedisSettings:
    """Parse REDIS_URL into ARQ RedisSettings."""
    settings = get_settings()
    # redis://host:port/db
    url = settings.redis_url
    rest = url.split("://", 1)[1] if "://" in url else url
    host_port, _, db = rest.partition("/")
    host, _, port = host_port.partition(":")
    return RedisSettings(
        host=host or "localhost",
        port=int(port) if port else 6379,
        database=int(db) if db else 0,
    )


def _cron_minutes(interval_seconds: float) -> set[int]:
    """Minutes of the hour matching the collection interval (at least every minute)."""
    step = max(1, min(60, round(interval_seconds / 60)))
    return set(range(0, 60, step))


async def startup(ctx: dict) -> None:
    """Build the pipeline once per worker process."""
    settings = get_settings()
    store = DataStore(
        settings.data_dir,
        active_window_hours=settings.active_window_hours,
        max_active_events=settings.max_active_events,
        default_page_size=settings.default_page_size,
    )
    await store.initialize()
    session = CookieSession.from_settings(settings)
    # No dashboard clients live in this process; nothing to publish to.
    collector = UsageCollector(settings, store, session)
    ctx["session"] = session
    ctx["tracker"] = UsageTracker(collector, settings.collection_interval, settings.shutdown_grace)
    # The web process collects itself unless COLLECT_ON_STARTUP=false.
    ctx["web_collects"] = settings.collect_on_startup


async def shutdown(ctx: dict) -> None:
    session = ctx.get("session")
    if session is not None:
        await session.close()


class WorkerSettings:
    """ARQ worker configuration."""
    functions = [collect_usage]
    cron_jobs = [
        cron(
            collect_usage,
            minute=_cron_minutes(get_settings().collection_interval),
            run_at_startup=True,
            unique=True,
        ),
    ]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = _redis_settings()
    # One pipeline at a time: the dataset file has a single writer.
    max_jobs = 1
    job_timeout = 600


if __name__ == "__main__":
    from arq import run_worker
    run_worker(WorkerSettings)  # type: ignore[arg-type]
