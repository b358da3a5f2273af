"""FunnelSync - Scheduler Jobs.

APScheduler daily job: ingest both feeds, then export yesterday's snapshot.
"""

from datetime import datetime, timedelta, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from funnelsync.api.deps import (
    build_export_service,
    build_extractor,
    build_pipeline,
    get_store,
)
from funnelsync.config import settings
from funnelsync.core.exceptions import FunnelSyncError
from funnelsync.core.logging import get_logger

logger = get_logger("scheduler")

scheduler = AsyncIOScheduler()


async def daily_export_job():
    """Ingest the latest feeds and export yesterday's consolidated metrics."""
    yesterday = datetime.now(timezone.utc).date() - timedelta(days=1)
    logger.info(f"Scheduled ingest + export starting for {yesterday.isoformat()}")

    store = get_store()
    extractor = build_extractor()
    service = build_export_service(store)
    try:
        ingest = await build_pipeline(store, extractor).run()
        result = await service.run_export(yesterday)
        logger.info(
            f"Scheduled run complete. Ingested {ingest.metrics_processed} rows, "
            f"exported {result.total_records} (delivered={result.delivered})"
        )
    except FunnelSyncError as e:
        logger.error(f"Scheduled run failed: {e}")
    finally:
        await extractor.close()
        if service.sink is not None:
            await service.sink.close()


def start_scheduler():
    """Configure and start the scheduler."""
    if not settings.scheduler_enabled:
        logger.info("Scheduler disabled via config")
        return

    scheduler.add_job(
        daily_export_job,
        "cron",
        hour=settings.export_hour,
        minute=0,
        id="daily_export",
        replace_existing=True,
        misfire_grace_time=3600,
    )
    scheduler.start()
    logger.info(f"Scheduler started. Daily export at {settings.export_hour}:00 UTC")


def stop_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
