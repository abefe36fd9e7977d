"""
Service layer for Mechmate notification logic.
"""
from mechmate.services.notification_store import NotificationStore
from mechmate.services.push_transport import WebPushTransport
from mechmate.services.delivery_service import DeliveryService
from mechmate.services.notification_service import NotificationService
from mechmate.services.scheduler import NotificationScheduler
from mechmate.services.retention_service import RetentionService

__all__ = [
    "NotificationStore",
    "WebPushTransport",
    "DeliveryService",
    "NotificationService",
    "NotificationScheduler",
    "RetentionService",
]
