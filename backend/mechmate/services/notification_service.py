"""
Due-task notification pipeline.

scan -> group -> compose -> broadcast -> record in the notification log
"""
from datetime import date, datetime
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo

from loguru import logger

from mechmate.services.delivery_service import DeliveryService
from mechmate.services.due_task_scanner import DueTask, DueTaskScanner
from mechmate.services.grouping import NotificationGroup, group_due_tasks
from mechmate.services.message_composer import compose_batched, compose_individual
from mechmate.services.notification_store import NotificationStore


class NotificationService:
    """
    Runs one due-task check and delivers the resulting notifications.
    """

    def __init__(
        self,
        store: NotificationStore,
        delivery: DeliveryService,
        timezone: str = "UTC",
        log_requires_delivery: bool = False,
        push_configured: bool = True,
    ):
        """
        Args:
            store: Storage access
            delivery: Push delivery to subscriptions
            timezone: IANA zone whose calendar date counts as "today"
            log_requires_delivery: Only record a task as notified when at
                least one subscription accepted the push. When False, a
                task is recorded after every delivery attempt, even one
                that reached no device.
            push_configured: False when no VAPID key is available; checks
                then do nothing
        """
        self.store = store
        self.delivery = delivery
        self.scanner = DueTaskScanner(store)
        self.tz = ZoneInfo(timezone)
        self.log_requires_delivery = log_requires_delivery
        self.push_configured = push_configured

    def today(self) -> date:
        return datetime.now(self.tz).date()

    async def check_and_send_due_notifications(self, today: Optional[date] = None) -> Dict[str, Any]:
        """
        Run one full check.

        Args:
            today: Calendar date to evaluate; defaults to the current date
                in the configured timezone

        Returns:
            Summary dict with due_tasks, pushes, deliveries and logged counts
        """
        summary = {"due_tasks": 0, "pushes": 0, "deliveries": 0, "logged": 0}

        if not self.push_configured:
            logger.info("Push notifications not configured, skipping check")
            return summary

        today = today or self.today()
        logger.info(f"Checking for due notifications ({today.isoformat()})")

        due_tasks = await self.scanner.scan(today)
        if not due_tasks:
            logger.info("No due tasks found")
            return summary

        summary["due_tasks"] = len(due_tasks)
        logger.info(f"Found {len(due_tasks)} due tasks")

        for group in group_due_tasks(due_tasks):
            await self._send_group(group, today.isoformat(), summary)

        logger.info(
            f"Notification check complete: {summary['pushes']} pushes, "
            f"{summary['deliveries']} deliveries, {summary['logged']}/{summary['due_tasks']} logged"
        )
        return summary

    async def _send_group(self, group: NotificationGroup, notification_date: str, summary: Dict[str, Any]):
        if group.is_batched:
            delivered = await self.delivery.broadcast_notification(compose_batched(group.due_tasks))
            summary["pushes"] += 1
            summary["deliveries"] += delivered
            for due_task in group.due_tasks:
                if await self._log_notification(due_task, notification_date, delivered):
                    summary["logged"] += 1
            return

        for due_task in group.due_tasks:
            delivered = await self.delivery.broadcast_notification(compose_individual(due_task))
            summary["pushes"] += 1
            summary["deliveries"] += delivered
            if await self._log_notification(due_task, notification_date, delivered):
                summary["logged"] += 1

    async def _log_notification(self, due_task: DueTask, notification_date: str, delivered: int) -> bool:
        """Record a task+threshold as notified for the day. Failures are logged, not raised."""
        if self.log_requires_delivery and delivered == 0:
            logger.info(
                f"Task {due_task.task.id} ({due_task.threshold_type.value}) reached no device, "
                f"leaving it unrecorded for the next check"
            )
            return False

        try:
            await self.store.ledger_append(due_task.task.id, due_task.threshold_type.value, notification_date)
            return True
        except Exception as e:
            logger.error(f"Failed to log notification for task {due_task.task.id}: {type(e).__name__}: {e}")
            return False
