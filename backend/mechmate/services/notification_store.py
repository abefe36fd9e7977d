"""
Storage access for the notification engine.

Every method opens its own session and commits before returning, so each
mutation (log append, subscription touch/delete) is atomic on its own and
a failure in one never rolls back another.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from loguru import logger
from sqlalchemy import select, delete, update, and_
from sqlalchemy.ext.asyncio import AsyncSession

from mechmate.models import (
    Equipment,
    TaskType,
    Task,
    NotificationSubscription,
    NotificationSettings,
    NotificationLog,
)
from mechmate.models.task import TASK_STATUS_PENDING

SETTINGS_ROW_ID = 1


class NotificationStore:
    """
    Read-only view of tasks and equipment plus the notification tables.
    """

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self._session_factory = session_factory

    # ------------------------------------------------------------------
    # Tasks and reference data (read-only)
    # ------------------------------------------------------------------

    async def get_all_pending_tasks(self) -> List[Task]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(Task).where(Task.status == TASK_STATUS_PENDING).order_by(Task.id)
            )
            return list(result.scalars().all())

    async def get_equipment_by_id(self, equipment_id: int) -> Optional[Equipment]:
        async with self._session_factory() as db:
            return await db.get(Equipment, equipment_id)

    async def get_task_type_by_id(self, task_type_id: int) -> Optional[TaskType]:
        async with self._session_factory() as db:
            return await db.get(TaskType, task_type_id)

    async def load_reference_maps(self) -> Tuple[Dict[int, Equipment], Dict[int, TaskType]]:
        """Load all equipment and task types keyed by id, one query each."""
        async with self._session_factory() as db:
            equipment = (await db.execute(select(Equipment))).scalars().all()
            task_types = (await db.execute(select(TaskType))).scalars().all()
        return {e.id: e for e in equipment}, {t.id: t for t in task_types}

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    async def get_notification_settings(self) -> Optional[NotificationSettings]:
        async with self._session_factory() as db:
            return await db.get(NotificationSettings, SETTINGS_ROW_ID)

    async def update_notification_settings(self, values: Dict[str, Any]) -> NotificationSettings:
        """Update the global settings row, creating it if missing."""
        async with self._session_factory() as db:
            row = await db.get(NotificationSettings, SETTINGS_ROW_ID)
            if row is None:
                row = NotificationSettings(id=SETTINGS_ROW_ID)
                db.add(row)
            for key, value in values.items():
                setattr(row, key, value)
            row.updated_at = datetime.utcnow()
            await db.commit()
            await db.refresh(row)
            return row

    # ------------------------------------------------------------------
    # Notification log (dedup ledger)
    # ------------------------------------------------------------------

    async def ledger_has_entry(self, task_id: int, threshold_type: str, notification_date: str) -> bool:
        async with self._session_factory() as db:
            result = await db.execute(
                select(NotificationLog.id).where(
                    and_(
                        NotificationLog.task_id == task_id,
                        NotificationLog.threshold_type == threshold_type,
                        NotificationLog.notification_date == notification_date,
                    )
                ).limit(1)
            )
            return result.first() is not None

    async def ledger_append(self, task_id: int, threshold_type: str, notification_date: str) -> None:
        async with self._session_factory() as db:
            db.add(NotificationLog(
                task_id=task_id,
                threshold_type=threshold_type,
                notification_date=notification_date,
            ))
            await db.commit()

    async def cleanup_notification_log(self, older_than_days: int) -> int:
        """Delete log rows created more than older_than_days ago. Returns rows deleted."""
        cutoff = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(days=older_than_days)
        async with self._session_factory() as db:
            result = await db.execute(delete(NotificationLog).where(NotificationLog.created_at < cutoff))
            await db.commit()
            deleted_count = result.rowcount or 0

        if deleted_count > 0:
            logger.info(f"Deleted {deleted_count} old records from {NotificationLog.__tablename__}")
        return deleted_count

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    async def list_subscriptions(self) -> List[NotificationSubscription]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(NotificationSubscription).order_by(
                    NotificationSubscription.created_at.desc(), NotificationSubscription.id.desc()
                )
            )
            return list(result.scalars().all())

    async def get_subscription_by_endpoint(self, endpoint: str) -> Optional[NotificationSubscription]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(NotificationSubscription).where(NotificationSubscription.endpoint == endpoint)
            )
            return result.scalar_one_or_none()

    async def register_subscription(
        self,
        endpoint: str,
        p256dh_key: str,
        auth_key: str,
        user_agent: Optional[str] = None,
    ) -> Tuple[NotificationSubscription, bool]:
        """
        Store a push subscription, or refresh it if the endpoint is already known.

        Returns:
            Tuple of (subscription, created)
        """
        existing = await self.get_subscription_by_endpoint(endpoint)
        if existing is not None:
            await self.touch_subscription(existing.id)
            return existing, False

        async with self._session_factory() as db:
            subscription = NotificationSubscription(
                endpoint=endpoint,
                p256dh_key=p256dh_key,
                auth_key=auth_key,
                user_agent=user_agent,
            )
            db.add(subscription)
            await db.commit()
            await db.refresh(subscription)
            return subscription, True

    async def touch_subscription(self, subscription_id: int) -> None:
        async with self._session_factory() as db:
            await db.execute(
                update(NotificationSubscription)
                .where(NotificationSubscription.id == subscription_id)
                .values(last_used_at=datetime.utcnow())
            )
            await db.commit()

    async def delete_subscription(self, subscription_id: int) -> bool:
        async with self._session_factory() as db:
            result = await db.execute(
                delete(NotificationSubscription).where(NotificationSubscription.id == subscription_id)
            )
            await db.commit()
            return (result.rowcount or 0) > 0

    async def delete_subscription_by_endpoint(self, endpoint: str) -> bool:
        async with self._session_factory() as db:
            result = await db.execute(
                delete(NotificationSubscription).where(NotificationSubscription.endpoint == endpoint)
            )
            await db.commit()
            return (result.rowcount or 0) > 0
