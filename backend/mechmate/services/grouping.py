"""
Grouping policy for due-task notifications.

Due tasks are bucketed by urgency. Small buckets get one push per task,
larger ones a single summary push.
"""
from dataclasses import dataclass, field
from typing import Dict, List

from mechmate.constants import MAX_INDIVIDUAL_NOTIFICATIONS_PER_GROUP, THIS_WEEK_MAX_DAYS
from mechmate.services.due_task_scanner import DueTask

BUCKET_OVERDUE = "overdue"
BUCKET_TODAY = "today"
BUCKET_THIS_WEEK = "thisweek"
BUCKET_FUTURE = "future"


@dataclass
class NotificationGroup:
    """Due tasks sharing an urgency bucket."""

    bucket: str
    due_tasks: List[DueTask] = field(default_factory=list)

    @property
    def is_batched(self) -> bool:
        return len(self.due_tasks) > MAX_INDIVIDUAL_NOTIFICATIONS_PER_GROUP


def grouping_key(due_task: DueTask) -> str:
    if due_task.is_overdue:
        return BUCKET_OVERDUE
    if due_task.days_until_due == 0:
        return BUCKET_TODAY
    if due_task.days_until_due <= THIS_WEEK_MAX_DAYS:
        return BUCKET_THIS_WEEK
    return BUCKET_FUTURE


def group_due_tasks(due_tasks: List[DueTask]) -> List[NotificationGroup]:
    """Partition due tasks by bucket, keeping buckets in first-seen order."""
    groups: Dict[str, NotificationGroup] = {}
    for due_task in due_tasks:
        key = grouping_key(due_task)
        if key not in groups:
            groups[key] = NotificationGroup(bucket=key)
        groups[key].due_tasks.append(due_task)
    return list(groups.values())
