"""LeadLaunch — Scheduler Jobs.

APScheduler interval job that refreshes insights for every active tenant.
"""

import asyncio

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlmodel import Session

from app.config import settings
from app.database import engine
from app.services.insights_sync import sync_all_clients
from app.core.logging import get_logger

logger = get_logger("scheduler")

scheduler = AsyncIOScheduler()

# A cycle still running when the next tick fires makes that tick a no-op
_cycle_lock = asyncio.Lock()


async def insights_sync_job():
    """Run one insights sync cycle unless another is still running."""
    if _cycle_lock.locked():
        logger.warning("Insights sync still running, skipping this tick")
        return

    async with _cycle_lock:
        logger.info("Scheduled insights sync starting...")
        try:
            with Session(engine) as session:
                report = await sync_all_clients(session)
            logger.info(
                f"Scheduled insights sync complete. Records: {report.records_upserted}"
            )
        except Exception as e:
            logger.error(f"Scheduled insights sync failed: {e}")


def start_scheduler():
    """Configure and start the scheduler."""
    if not settings.scheduler_enabled:
        logger.info("Scheduler disabled via config")
        return

    scheduler.add_job(
        insights_sync_job,
        "interval",
        minutes=settings.insights_sync_minutes,
        id="insights_sync",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    logger.info(
        f"Scheduler started. Insights sync every {settings.insights_sync_minutes} min"
    )


def stop_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
