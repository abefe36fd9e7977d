"""
Notification log retention.
"""
from loguru import logger
from mechmate.database import checkpoint_wal
from mechmate.services.notification_store import NotificationStore


class RetentionService:
    """
    Deletes notification log rows past the retention window.

    Only today's rows matter for deduplication; older rows are history.
    """

    def __init__(self, store: NotificationStore, retention_days: int):
        self.store = store
        self.retention_days = retention_days

    async def cleanup_old_data(self):
        """Clean up old notification log rows. Errors are logged, not raised."""
        logger.info(f"Starting notification log cleanup (retention: {self.retention_days} days)")

        try:
            await self.store.cleanup_notification_log(self.retention_days)
            logger.info("Notification log cleanup completed")

            # Consolidate the WAL after deleting rows
            await checkpoint_wal()

        except Exception as e:
            logger.error(f"Error during notification log cleanup: {e}")
