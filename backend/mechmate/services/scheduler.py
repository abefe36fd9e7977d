"""
Notification scheduler.

Owns the recurring trigger for due-task checks. Constructed once by the
application lifespan and shared with the HTTP layer through app.state.
"""
import asyncio
from typing import Any, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from loguru import logger

from mechmate.constants import DEFAULT_NOTIFICATION_CRON_SCHEDULE, NOTIFICATION_JOB_ID
from mechmate.middleware.correlation import correlation_scope, new_correlation_id
from mechmate.services.notification_service import NotificationService


class NotificationScheduler:
    """
    Runs the notification check on a cron schedule and on demand.

    Timer runs and manual runs share one lock, so two checks never
    overlap. APScheduler's max_instances=1 additionally drops a timer
    firing while the previous timer run is still going.
    """

    def __init__(
        self,
        notification_service: NotificationService,
        schedule: str = DEFAULT_NOTIFICATION_CRON_SCHEDULE,
        timezone: str = "UTC",
    ):
        self.notification_service = notification_service
        self.schedule = schedule
        self.timezone = timezone
        # Validate the expression up front so a bad value fails at startup
        self._trigger = CronTrigger.from_crontab(schedule, timezone=timezone)
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._run_lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self):
        """Start the recurring check. No-op if already started."""
        if self.is_running:
            logger.info("Notification scheduler is already running")
            return

        logger.info(f"Starting notification scheduler with schedule: {self.schedule} ({self.timezone})")
        self._scheduler = AsyncIOScheduler(timezone=self.timezone)
        self._scheduler.add_job(
            self._scheduled_check,
            trigger=self._trigger,
            id=NOTIFICATION_JOB_ID,
            name="Due-task notification check",
            replace_existing=True,
            max_instances=1,  # Prevent overlapping timer runs
            coalesce=True,    # Merge missed runs if the process was asleep
        )
        self._scheduler.start()
        logger.info("Notification scheduler started")

    def stop(self):
        """Stop the recurring check. No-op if not started."""
        if not self.is_running:
            logger.info("Notification scheduler is not running")
            return

        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Notification scheduler stopped")

    def get_status(self) -> Dict[str, Any]:
        next_run_at = None
        if self.is_running:
            job = self._scheduler.get_job(NOTIFICATION_JOB_ID)
            if job is not None and job.next_run_time is not None:
                next_run_at = job.next_run_time.isoformat()
        return {
            "running": self.is_running,
            "schedule": self.schedule,
            "next_run_at": next_run_at,
        }

    async def run_check_now(self) -> Dict[str, Any]:
        """
        Run one full check, waiting for any check already in progress.

        Raises whatever the check raises; the timer path logs instead.
        """
        with correlation_scope(new_correlation_id("run-")):
            async with self._run_lock:
                return await self.notification_service.check_and_send_due_notifications()

    async def _scheduled_check(self):
        logger.info("Running scheduled notification check...")
        try:
            await self.run_check_now()
        except Exception as e:
            logger.error(f"Error in scheduled notification check: {type(e).__name__}: {e}")
