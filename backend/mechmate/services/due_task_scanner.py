"""
Due-task scanner.

Finds every (pending task, threshold) pair that is due today and has not
been announced yet today. Scanning never writes to the notification log,
so a scan can be repeated safely until a notification is recorded.
"""
from dataclasses import dataclass
from datetime import date
from typing import List

from loguru import logger

from mechmate.models import Equipment, Task, TaskType
from mechmate.services.notification_store import NotificationStore
from mechmate.services.thresholds import (
    ThresholdType,
    days_until_due,
    enabled_thresholds,
    matching_thresholds,
)


@dataclass
class DueTask:
    """A task that satisfies one threshold today. Lives for one scan only."""

    task: Task
    equipment: Equipment
    task_type: TaskType
    days_until_due: int
    is_overdue: bool
    threshold_type: ThresholdType


class DueTaskScanner:
    """
    Evaluates pending tasks against the enabled thresholds.
    """

    def __init__(self, store: NotificationStore):
        self.store = store

    async def scan(self, today: date) -> List[DueTask]:
        """
        Collect the due tasks for a calendar day.

        Args:
            today: The calendar date to evaluate against; also the
                notification log key date

        Returns:
            DueTask list in task order, empty when notifications are
            disabled or unconfigured
        """
        notification_settings = await self.store.get_notification_settings()
        if notification_settings is None or not notification_settings.enabled:
            logger.info("Notifications disabled, skipping check")
            return []

        thresholds = enabled_thresholds(notification_settings)
        if not thresholds:
            logger.info("No notification thresholds enabled, skipping check")
            return []

        tasks = await self.store.get_all_pending_tasks()
        equipment_by_id, task_types_by_id = await self.store.load_reference_maps()
        notification_date = today.isoformat()

        due_tasks: List[DueTask] = []
        for task in tasks:
            equipment = equipment_by_id.get(task.equipment_id)
            task_type = task_types_by_id.get(task.task_type_id)
            if equipment is None or task_type is None:
                missing = f"equipment {task.equipment_id}" if equipment is None else f"task type {task.task_type_id}"
                logger.warning(f"Skipping task {task.id}: {missing} not found")
                continue

            for threshold in matching_thresholds(task.next_due_date, today, thresholds):
                if await self.store.ledger_has_entry(task.id, threshold.value, notification_date):
                    logger.debug(f"Task {task.id} already notified for {threshold.value} on {notification_date}")
                    continue

                days = days_until_due(task.next_due_date, today)
                due_tasks.append(DueTask(
                    task=task,
                    equipment=equipment,
                    task_type=task_type,
                    days_until_due=days,
                    is_overdue=days < 0,
                    threshold_type=threshold,
                ))

        logger.debug(f"Scanned {len(tasks)} pending tasks, {len(due_tasks)} due on {notification_date}")
        return due_tasks
