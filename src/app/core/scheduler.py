"""
Background Job Scheduler

Provides timed task execution using APScheduler with AsyncIO support.
Handles scheduler creation, job event logging, and graceful shutdown.

Design Principles:
- The scheduler owns timing only; jobs re-read durable state when they run
- Failed jobs are logged but don't crash the scheduler
- Each job runs as its own asyncio task, so a slow job never delays others
- Scheduler integrates with FastAPI lifespan

Usage:
    from app.core.scheduler import start_scheduler, stop_scheduler

    # In FastAPI lifespan:
    async def lifespan(app):
        scheduler = await start_scheduler()
        yield
        await stop_scheduler(scheduler)
"""

import logging
from datetime import UTC, datetime

from apscheduler.events import (
    EVENT_JOB_ERROR,
    EVENT_JOB_EXECUTED,
    EVENT_JOB_MISSED,
    JobExecutionEvent,
)
from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from app.core.config import settings

logger = logging.getLogger(__name__)


class SchedulerConfig:
    """Configuration for the background scheduler."""

    TIMEZONE = settings.scheduler_timezone

    # One-shot decision jobs must run however late the loop wakes up
    JOB_COALESCE = True
    JOB_MAX_INSTANCES = 1
    JOB_MISFIRE_GRACE_TIME = None

    JOB_DEFAULTS = {
        "coalesce": JOB_COALESCE,
        "max_instances": JOB_MAX_INSTANCES,
        "misfire_grace_time": JOB_MISFIRE_GRACE_TIME,
    }


def _job_listener(event: JobExecutionEvent) -> None:
    """
    Listener for job execution events.

    Logs job execution results for monitoring and debugging.

    Args:
        event: The job execution event from APScheduler
    """
    if event.code == EVENT_JOB_MISSED:
        logger.warning(f"Job {event.job_id} missed its run time {event.scheduled_run_time}")
    elif event.exception:
        logger.error(
            f"Job {event.job_id} failed with exception: {event.exception}",
            exc_info=event.exception,
        )
    else:
        logger.debug(f"Job {event.job_id} executed at {datetime.now(UTC).isoformat()}")


def create_scheduler() -> AsyncIOScheduler:
    """Build a scheduler configured for the application, without starting it."""
    scheduler = AsyncIOScheduler(
        timezone=SchedulerConfig.TIMEZONE,
        # Executor config dicts are consumed by APScheduler; always pass a fresh instance
        executors={"default": AsyncIOExecutor()},
        job_defaults=dict(SchedulerConfig.JOB_DEFAULTS),
    )
    scheduler.add_listener(_job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR | EVENT_JOB_MISSED)
    return scheduler


async def start_scheduler(scheduler: AsyncIOScheduler | None = None) -> AsyncIOScheduler:
    """
    Start a background scheduler.

    Must be awaited from inside the running event loop, since the
    AsyncIOScheduler binds to the loop that is current when it starts.

    Args:
        scheduler: An existing scheduler to start; a new one is created if omitted

    Returns:
        The started scheduler instance
    """
    if scheduler is None:
        scheduler = create_scheduler()

    if scheduler.running:
        logger.warning("Scheduler already running, returning existing instance")
        return scheduler

    logger.info("Starting background job scheduler...")
    scheduler.start()
    logger.info("Background job scheduler started successfully")
    return scheduler


async def stop_scheduler(scheduler: AsyncIOScheduler | None) -> None:
    """
    Stop the background scheduler.

    Pending jobs are discarded; durable state is the source of truth and is
    re-read on the next start.
    """
    if scheduler is None:
        logger.debug("Scheduler not initialized, nothing to stop")
        return

    if not scheduler.running:
        logger.debug("Scheduler not running, nothing to stop")
        return

    logger.info("Stopping background job scheduler...")
    scheduler.shutdown(wait=False)
    logger.info("Background job scheduler stopped")
