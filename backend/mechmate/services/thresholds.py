"""
Notification threshold rules.

A threshold fires on the day a task's due date is a fixed number of days
away, except overdue_daily which fires on every day a task is past due.
"""
from datetime import date, datetime
from enum import Enum
from typing import Iterable, List, Optional, Set

from mechmate.constants import THRESHOLD_LEAD_DAYS


class ThresholdType(str, Enum):
    """Named notification thresholds, ordered from furthest to past due."""

    ONE_MONTH = "one_month"
    TWO_WEEKS = "two_weeks"
    ONE_WEEK = "one_week"
    THREE_DAYS = "three_days"
    ONE_DAY = "one_day"
    DUE_DATE = "due_date"
    OVERDUE_DAILY = "overdue_daily"

    @property
    def lead_days(self) -> Optional[int]:
        """Days before the due date this threshold fires on; None for overdue_daily."""
        return THRESHOLD_LEAD_DAYS.get(self.value)

    @property
    def settings_field(self) -> str:
        """Name of the NotificationSettings column that enables this threshold."""
        return f"threshold_{self.value}"


def days_until_due(due_date: date, today: date) -> int:
    """Whole days from today to the due date; negative once overdue."""
    if isinstance(due_date, datetime):
        due_date = due_date.date()
    if isinstance(today, datetime):
        today = today.date()
    return (due_date - today).days


def threshold_matches(threshold: ThresholdType, days_diff: int) -> bool:
    if threshold is ThresholdType.OVERDUE_DAILY:
        return days_diff < 0
    return days_diff == threshold.lead_days


def matching_thresholds(
    due_date: Optional[date],
    today: date,
    enabled: Iterable[ThresholdType],
) -> List[ThresholdType]:
    """
    Return the enabled thresholds a task currently satisfies.

    Args:
        due_date: The task's next due date; tasks without one never match
        today: The current calendar date
        enabled: Thresholds switched on in the notification settings

    Returns:
        Matching thresholds in declaration order. The fixed thresholds are
        disjoint day values, so at most one of them matches, and
        overdue_daily can only match when none of them do.
    """
    if due_date is None:
        return []

    days_diff = days_until_due(due_date, today)
    enabled_set: Set[ThresholdType] = set(enabled)
    return [t for t in ThresholdType if t in enabled_set and threshold_matches(t, days_diff)]


def enabled_thresholds(notification_settings) -> List[ThresholdType]:
    """Read the enabled thresholds off a NotificationSettings row."""
    return [t for t in ThresholdType if getattr(notification_settings, t.settings_field, False)]
