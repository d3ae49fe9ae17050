"""Task scheduler for periodic maintenance jobs."""

import logging
from typing import Any, Awaitable, Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config import settings
from ..services.popularity import PopularityTracker

logger = logging.getLogger(__name__)

PRUNE_TRENDING_JOB_ID = "prune_trending_queries"


class Scheduler:
    """Thin wrapper around an in-memory AsyncIOScheduler."""

    def __init__(self):
        self.scheduler: Optional[AsyncIOScheduler] = None

    def init(self) -> AsyncIOScheduler:
        """Create the underlying scheduler if needed."""
        if self.scheduler is None:
            self.scheduler = AsyncIOScheduler(
                timezone=settings.scheduler.timezone,
                job_defaults=settings.scheduler.job_defaults,
            )
        return self.scheduler

    def schedule_interval(
        self, func: Callable[..., Awaitable[Any]], seconds: int, job_id: str, **kwargs
    ) -> str:
        """Run func every seconds seconds, replacing any job with the same id."""
        scheduler = self.init()
        scheduler.add_job(
            func,
            trigger=IntervalTrigger(seconds=seconds),
            id=job_id,
            replace_existing=True,
            kwargs=kwargs,
        )
        logger.info(f"Scheduled job {job_id} every {seconds}s")
        return job_id

    def start(self):
        """Start the scheduler."""
        if self.scheduler and not self.scheduler.running:
            self.scheduler.start()

    def shutdown(self):
        """Shutdown the scheduler."""
        if self.scheduler and self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    def get_jobs(self):
        """Get all scheduled jobs."""
        return self.scheduler.get_jobs() if self.scheduler else []


async def prune_trending_queries(tracker: PopularityTracker) -> int:
    """Scheduled job: drop trending queries that fell out of the window."""
    try:
        return await tracker.prune_trending()
    except Exception as e:
        logger.error(f"Trending prune failed: {e}")
        return 0


def schedule_maintenance(scheduler: Scheduler, tracker: PopularityTracker) -> None:
    """Register the periodic analytics maintenance jobs."""
    scheduler.schedule_interval(
        prune_trending_queries,
        settings.analytics.prune_interval_seconds,
        PRUNE_TRENDING_JOB_ID,
        tracker=tracker,
    )


# Global scheduler instance
scheduler = Scheduler()


def start_scheduler(tracker: PopularityTracker):
    """Register maintenance jobs and start the task scheduler."""
    if not settings.scheduler.enabled:
        logger.info("Scheduler disabled")
        return
    schedule_maintenance(scheduler, tracker)
    scheduler.start()
    logger.info(f"Scheduler started with jobs: {[job.id for job in scheduler.get_jobs()]}")
