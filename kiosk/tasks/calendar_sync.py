"""
Background calendar sync task using APScheduler.

Periodically pulls the display calendar's events from Google into the cache.
"""

import logging
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from starlette.concurrency import run_in_threadpool

from kiosk.config import get_settings
from kiosk.services.calendar_service import SyncResult

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler()

JOB_ID = "calendar_sync"


def _run_sync() -> SyncResult | None:
    """Sync events in a fresh session; None when nobody is signed in."""
    from kiosk.database import SessionLocal
    from kiosk.services.calendar_service import get_calendar_service
    from kiosk.services.user_service import get_current_user

    with SessionLocal() as db:
        if get_current_user(db) is None:
            return None
        return get_calendar_service(db).sync_events()


async def sync_calendar_task():
    """
    Scheduled job: sync events for the stored user.

    Skipped when no user is stored. Failures are logged; the job stays
    scheduled for the next interval.
    """
    logger.info("Starting scheduled calendar sync...")

    try:
        result = await run_in_threadpool(_run_sync)
    except Exception:
        logger.exception("Calendar sync task failed")
        return

    if result is None:
        logger.info("No authenticated user, skipping calendar sync")
    elif result.success:
        logger.info(f"Scheduled sync stored {result.events_synced} events from {result.calendar_id}")
    else:
        logger.error(f"Scheduled sync failed: {result.error}")


def start_scheduler():
    """
    Start the background scheduler.

    Call this from FastAPI startup event. The first run fires immediately.
    """
    settings = get_settings()

    if not settings.sync_enabled:
        logger.info("Calendar sync is disabled in settings")
        return

    scheduler.add_job(
        sync_calendar_task,
        trigger=IntervalTrigger(minutes=settings.sync_interval_minutes),
        id=JOB_ID,
        name="Sync events from Google Calendar",
        replace_existing=True,
        next_run_time=datetime.now(timezone.utc),  # Run immediately on startup
    )

    scheduler.start()
    logger.info(f"Calendar sync scheduler started (interval: {settings.sync_interval_minutes} minutes)")


def stop_scheduler():
    """
    Stop the background scheduler gracefully.

    Call this from FastAPI shutdown event.
    """
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Calendar sync scheduler stopped")


async def run_sync_now() -> SyncResult | None:
    """Run one sync immediately, outside the schedule."""
    return await run_in_threadpool(_run_sync)
