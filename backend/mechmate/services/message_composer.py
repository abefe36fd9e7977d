"""
Push message composition for due-task notifications.
"""
from typing import List

from pydantic import BaseModel, Field

from mechmate.constants import (
    DEFAULT_NOTIFICATION_BADGE,
    DEFAULT_NOTIFICATION_ICON,
    DEFAULT_NOTIFICATION_URL,
    TEST_NOTIFICATION_BODY,
    TEST_NOTIFICATION_TITLE,
)
from mechmate.services.due_task_scanner import DueTask
from mechmate.services.grouping import BUCKET_THIS_WEEK, BUCKET_TODAY, grouping_key
from mechmate.utils.formatting import format_timeframe

TITLE_OVERDUE = "Overdue Maintenance"
TITLE_UPCOMING = "Upcoming Maintenance"
TITLE_MIXED = "Maintenance Updates"


class PushMessageData(BaseModel):
    """Data handed to the service worker's notificationclick handler."""
    url: str = DEFAULT_NOTIFICATION_URL


class PushMessage(BaseModel):
    """Wire payload delivered to the client push handler."""
    title: str
    body: str
    icon: str = DEFAULT_NOTIFICATION_ICON
    badge: str = DEFAULT_NOTIFICATION_BADGE
    data: PushMessageData = Field(default_factory=PushMessageData)


def compose_individual(due_task: DueTask) -> PushMessage:
    """One push for one due task, e.g. "Oil Change due for Truck in 3 days"."""
    title = TITLE_OVERDUE if due_task.is_overdue else TITLE_UPCOMING
    body = (
        f"{due_task.task_type.name} due for {due_task.equipment.name} "
        f"{format_timeframe(due_task.days_until_due)}"
    )
    return PushMessage(title=title, body=body)


def compose_batched(due_tasks: List[DueTask]) -> PushMessage:
    """
    One summary push for a group of due tasks.

    Mixed groups report both counts; all-upcoming groups phrase the
    timeframe from the bucket of the first task.
    """
    overdue_count = sum(1 for t in due_tasks if t.is_overdue)
    upcoming_count = len(due_tasks) - overdue_count

    if overdue_count and upcoming_count:
        return PushMessage(
            title=TITLE_MIXED,
            body=f"You have {overdue_count} overdue and {upcoming_count} upcoming maintenance tasks",
        )

    if overdue_count:
        return PushMessage(
            title=TITLE_OVERDUE,
            body=f"You have {overdue_count} overdue maintenance tasks",
        )

    bucket = grouping_key(due_tasks[0])
    if bucket == BUCKET_TODAY:
        timeframe = "today"
    elif bucket == BUCKET_THIS_WEEK:
        timeframe = "this week"
    else:
        timeframe = "soon"
    return PushMessage(
        title=TITLE_UPCOMING,
        body=f"You have {upcoming_count} maintenance tasks due {timeframe}",
    )


def compose_test_message() -> PushMessage:
    return PushMessage(title=TEST_NOTIFICATION_TITLE, body=TEST_NOTIFICATION_BODY)
