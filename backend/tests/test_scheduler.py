import asyncio

import pytest

from mechmate.services.scheduler import NotificationScheduler


class StubNotificationService:
    def __init__(self, delay: float = 0, error: Exception = None):
        self.delay = delay
        self.error = error
        self.calls = 0
        self.active = 0
        self.max_active = 0

    async def check_and_send_due_notifications(self, today=None):
        self.calls += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
            if self.error:
                raise self.error
            return {"due_tasks": 0, "pushes": 0, "deliveries": 0, "logged": 0}
        finally:
            self.active -= 1


def test_invalid_cron_expression_is_rejected():
    with pytest.raises(ValueError):
        NotificationScheduler(StubNotificationService(), schedule="not a cron")


def test_start_stop_and_status():
    async def scenario():
        scheduler = NotificationScheduler(StubNotificationService(), schedule="0 * * * *")
        assert scheduler.get_status() == {"running": False, "schedule": "0 * * * *", "next_run_at": None}

        scheduler.start()
        scheduler.start()  # second start is a no-op
        status = scheduler.get_status()
        assert status["running"] is True
        assert status["next_run_at"] is not None
        assert len(scheduler._scheduler.get_jobs()) == 1

        scheduler.stop()
        scheduler.stop()  # second stop is a no-op
        assert scheduler.get_status()["running"] is False

    asyncio.run(scenario())


def test_run_check_now_returns_summary():
    service = StubNotificationService()
    scheduler = NotificationScheduler(service)

    summary = asyncio.run(scheduler.run_check_now())

    assert summary["due_tasks"] == 0
    assert service.calls == 1


def test_concurrent_runs_do_not_overlap():
    service = StubNotificationService(delay=0.05)
    scheduler = NotificationScheduler(service)

    async def scenario():
        await asyncio.gather(scheduler.run_check_now(), scheduler.run_check_now())

    asyncio.run(scenario())
    assert service.calls == 2
    assert service.max_active == 1


def test_run_check_now_propagates_errors():
    scheduler = NotificationScheduler(StubNotificationService(error=RuntimeError("db down")))
    with pytest.raises(RuntimeError):
        asyncio.run(scheduler.run_check_now())


def test_scheduled_check_logs_errors_instead_of_raising():
    service = StubNotificationService(error=RuntimeError("db down"))
    scheduler = NotificationScheduler(service)

    asyncio.run(scheduler._scheduled_check())
    assert service.calls == 1
