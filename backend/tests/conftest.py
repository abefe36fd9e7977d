import asyncio
import json
import os
import tempfile
from datetime import date
from typing import Dict, List, Optional

import pytest

# Point the app at a throwaway data directory before mechmate is imported
_DATA_DIR = tempfile.mkdtemp(prefix="mechmate-tests-")
os.environ.setdefault("DATA_DIR", _DATA_DIR)
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_DATA_DIR}/test.db")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("TIMEZONE", "UTC")

from mechmate import models  # noqa: E402,F401
from mechmate.database import AsyncSessionLocal, Base, engine, seed_notification_settings  # noqa: E402
from mechmate.models import (  # noqa: E402
    Equipment,
    NotificationSubscription,
    Task,
    TaskType,
)
from mechmate.services.notification_store import NotificationStore  # noqa: E402
from mechmate.services.push_transport import BasePushTransport, PushFailureKind, PushResult  # noqa: E402
from mechmate.services.thresholds import ThresholdType  # noqa: E402

TODAY = date(2024, 6, 15)


class FakeTransport(BasePushTransport):
    """Records sends and answers with scripted results per endpoint."""

    def __init__(self):
        super().__init__(max_attempts=1, initial_backoff=0)
        self.sent: List[Dict] = []
        self.results: Dict[str, PushResult] = {}

    def fail(self, endpoint: str, kind: PushFailureKind, status_code: Optional[int] = None):
        self.results[endpoint] = PushResult(success=False, failure_kind=kind, status_code=status_code, error="scripted")

    async def _deliver(self, endpoint, keys, payload_json):
        raise NotImplementedError

    async def send(self, endpoint, keys, payload_json):
        self.sent.append({"endpoint": endpoint, "keys": keys, "payload": json.loads(payload_json)})
        return self.results.get(endpoint, PushResult(success=True))

    @property
    def payloads(self) -> List[Dict]:
        return [s["payload"] for s in self.sent]


class Seeder:
    """Synchronous helpers for inserting rows from plain test functions."""

    def _add(self, obj):
        async def _run():
            async with AsyncSessionLocal() as db:
                db.add(obj)
                await db.commit()
                await db.refresh(obj)
                return obj
        return asyncio.run(_run())

    def equipment(self, name: str = "Truck") -> Equipment:
        return self._add(Equipment(name=name, current_usage_value=1000, usage_unit="miles"))

    def task_type(self, name: str = "Oil Change") -> TaskType:
        return self._add(TaskType(name=name))

    def task(
        self,
        next_due_date: Optional[date],
        equipment: Optional[Equipment] = None,
        task_type: Optional[TaskType] = None,
        status: str = "pending",
        equipment_id: Optional[int] = None,
        task_type_id: Optional[int] = None,
    ) -> Task:
        equipment = equipment or (None if equipment_id else self.equipment())
        task_type = task_type or (None if task_type_id else self.task_type())
        return self._add(Task(
            equipment_id=equipment_id or equipment.id,
            task_type_id=task_type_id or task_type.id,
            title="Scheduled maintenance",
            time_interval_days=90,
            next_due_date=next_due_date,
            status=status,
        ))

    def subscription(self, endpoint: str) -> NotificationSubscription:
        return self._add(NotificationSubscription(endpoint=endpoint, p256dh_key="p256dh-key", auth_key="auth-key"))

    def settings(self, enabled: bool = True, only: Optional[List[ThresholdType]] = None):
        """Set the global switches; with `only`, enable just those thresholds."""
        values = {"enabled": enabled}
        for threshold in ThresholdType:
            values[threshold.settings_field] = only is None or threshold in only
        return asyncio.run(NotificationStore(AsyncSessionLocal).update_notification_settings(values))


@pytest.fixture
def store() -> NotificationStore:
    """Fresh schema with default settings for every test."""
    async def _reset():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
        await seed_notification_settings()

    asyncio.run(_reset())
    return NotificationStore(AsyncSessionLocal)


@pytest.fixture
def seed(store) -> Seeder:
    return Seeder()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def arun():
    """Run a coroutine to completion from a sync test."""
    return asyncio.run


def ledger_rows() -> List[tuple]:
    from sqlalchemy import select
    from mechmate.models import NotificationLog

    async def _rows():
        async with AsyncSessionLocal() as db:
            result = await db.execute(
                select(NotificationLog.task_id, NotificationLog.threshold_type, NotificationLog.notification_date)
                .order_by(NotificationLog.id)
            )
            return [tuple(r) for r in result.all()]
    return asyncio.run(_rows())


@pytest.fixture
def ledger():
    return ledger_rows

