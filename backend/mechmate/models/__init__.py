"""
Database models for Mechmate.
"""
from mechmate.models.equipment import Equipment, EquipmentType, TaskType
from mechmate.models.task import Task
from mechmate.models.notification import NotificationSubscription, NotificationSettings, NotificationLog

__all__ = [
    "Equipment",
    "EquipmentType",
    "TaskType",
    "Task",
    "NotificationSubscription",
    "NotificationSettings",
    "NotificationLog",
]
