from datetime import date, datetime, timedelta, timezone

from mechmate.services.delivery_service import DeliveryService
from mechmate.services import notification_service
from mechmate.services.notification_service import NotificationService
from mechmate.services.push_transport import PushFailureKind


def make_service(store, transport, **kwargs) -> NotificationService:
    return NotificationService(store, DeliveryService(store, transport), **kwargs)


def test_due_today_sends_once_and_records(store, seed, transport, today, arun, ledger):
    truck = seed.equipment("Truck")
    oil = seed.task_type("Oil Change")
    task = seed.task(today, equipment=truck, task_type=oil)
    seed.subscription("https://push.example/a")
    service = make_service(store, transport)

    summary = arun(service.check_and_send_due_notifications(today))

    assert summary == {"due_tasks": 1, "pushes": 1, "deliveries": 1, "logged": 1}
    assert transport.payloads == [{
        "title": "Upcoming Maintenance",
        "body": "Oil Change due for Truck today",
        "icon": "/robot.png",
        "badge": "/robot.png",
        "data": {"url": "/"},
    }]
    assert ledger() == [(task.id, "due_date", today.isoformat())]

    # Same day again: nothing new
    summary = arun(service.check_and_send_due_notifications(today))
    assert summary["due_tasks"] == 0
    assert len(transport.sent) == 1


def test_two_tasks_in_a_bucket_send_individually(store, seed, transport, today, arun, ledger):
    seed.task(today - timedelta(days=1))
    seed.task(today - timedelta(days=2))
    seed.subscription("https://push.example/a")

    summary = arun(make_service(store, transport).check_and_send_due_notifications(today))

    assert summary["pushes"] == 2
    assert [p["body"] for p in transport.payloads] == [
        "Oil Change due for Truck yesterday",
        "Oil Change due for Truck 2 days ago",
    ]
    assert len(ledger()) == 2


def test_three_tasks_in_a_bucket_are_batched(store, seed, transport, today, arun, ledger):
    for days in (1, 2, 3):
        seed.task(today - timedelta(days=days))
    seed.subscription("https://push.example/a")

    summary = arun(make_service(store, transport).check_and_send_due_notifications(today))

    assert summary == {"due_tasks": 3, "pushes": 1, "deliveries": 1, "logged": 3}
    assert transport.payloads[0]["title"] == "Overdue Maintenance"
    assert transport.payloads[0]["body"] == "You have 3 overdue maintenance tasks"
    assert {row[1] for row in ledger()} == {"overdue_daily"}


def test_buckets_are_sent_separately(store, seed, transport, today, arun):
    seed.task(today - timedelta(days=1))
    seed.task(today)
    seed.task(today + timedelta(days=30))
    seed.subscription("https://push.example/a")

    summary = arun(make_service(store, transport).check_and_send_due_notifications(today))

    assert summary["pushes"] == 3
    assert [p["title"] for p in transport.payloads] == [
        "Overdue Maintenance",
        "Upcoming Maintenance",
        "Upcoming Maintenance",
    ]


def test_logged_even_without_subscribers_by_default(store, seed, transport, today, arun, ledger):
    task = seed.task(today)

    summary = arun(make_service(store, transport).check_and_send_due_notifications(today))

    assert summary["deliveries"] == 0
    assert ledger() == [(task.id, "due_date", today.isoformat())]


def test_log_requires_delivery_keeps_task_for_retry(store, seed, transport, today, arun, ledger):
    seed.task(today)
    seed.subscription("https://push.example/flaky")
    transport.fail("https://push.example/flaky", PushFailureKind.TRANSIENT, 503)
    service = make_service(store, transport, log_requires_delivery=True)

    summary = arun(service.check_and_send_due_notifications(today))
    assert summary["logged"] == 0
    assert ledger() == []

    # The device comes back and the next run delivers
    transport.results.clear()
    summary = arun(service.check_and_send_due_notifications(today))
    assert summary["logged"] == 1
    assert len(ledger()) == 1


def test_ledger_failure_does_not_abort_run(store, seed, transport, today, arun, monkeypatch):
    seed.task(today - timedelta(days=1))
    seed.task(today - timedelta(days=2))
    seed.subscription("https://push.example/a")

    async def broken_append(task_id, threshold_type, notification_date):
        raise RuntimeError("disk full")

    monkeypatch.setattr(store, "ledger_append", broken_append)
    summary = arun(make_service(store, transport).check_and_send_due_notifications(today))

    assert summary["pushes"] == 2
    assert summary["logged"] == 0


def test_disabled_notifications_send_nothing(store, seed, transport, today, arun):
    seed.task(today)
    seed.subscription("https://push.example/a")
    seed.settings(enabled=False)

    summary = arun(make_service(store, transport).check_and_send_due_notifications(today))

    assert summary["due_tasks"] == 0
    assert transport.sent == []


def test_unconfigured_push_skips_check(store, seed, transport, today, arun, ledger):
    seed.task(today)
    seed.subscription("https://push.example/a")

    summary = arun(make_service(store, transport, push_configured=False).check_and_send_due_notifications(today))

    assert summary["due_tasks"] == 0
    assert transport.sent == []
    assert ledger() == []


def test_touch_failure_after_delivery_still_records(store, seed, transport, today, arun, ledger, monkeypatch):
    task = seed.task(today)
    seed.subscription("https://push.example/a")

    async def locked_touch(subscription_id):
        raise RuntimeError("database is locked")

    monkeypatch.setattr(store, "touch_subscription", locked_touch)
    service = make_service(store, transport, log_requires_delivery=True)

    summary = arun(service.check_and_send_due_notifications(today))
    assert summary["deliveries"] == 1
    assert ledger() == [(task.id, "due_date", today.isoformat())]

    # Recorded, so a second run the same day sends nothing
    arun(service.check_and_send_due_notifications(today))
    assert len(transport.sent) == 1


class FrozenDatetime(datetime):
    """2024-06-15 12:00 UTC, already 2024-06-16 in Kiritimati (UTC+14)."""

    @classmethod
    def now(cls, tz=None):
        return datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc).astimezone(tz)


def test_today_follows_configured_timezone(store, transport, monkeypatch):
    monkeypatch.setattr(notification_service, "datetime", FrozenDatetime)

    assert make_service(store, transport, timezone="UTC").today().isoformat() == "2024-06-15"
    assert make_service(store, transport, timezone="Pacific/Kiritimati").today().isoformat() == "2024-06-16"
    assert make_service(store, transport, timezone="Pacific/Honolulu").today().isoformat() == "2024-06-15"


def test_ledger_key_uses_configured_timezone(store, seed, transport, arun, ledger, monkeypatch):
    monkeypatch.setattr(notification_service, "datetime", FrozenDatetime)
    task = seed.task(date(2024, 6, 16))
    service = make_service(store, transport, timezone="Pacific/Kiritimati")

    summary = arun(service.check_and_send_due_notifications())

    assert summary["logged"] == 1
    assert ledger() == [(task.id, "due_date", "2024-06-16")]
