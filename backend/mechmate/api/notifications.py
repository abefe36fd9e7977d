"""
Notification API routes: settings, push subscriptions and manual triggers.
"""
from typing import Optional
from fastapi import APIRouter, Request
from pydantic import AliasChoices, BaseModel, Field, StrictBool
from loguru import logger

from mechmate.models import NotificationSubscription, NotificationSettings
from mechmate.services.thresholds import ThresholdType
from mechmate.utils.errors import ErrorCode, raise_error, log_and_raise_500

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


class NotificationSettingsRequest(BaseModel):
    enabled: StrictBool
    threshold_one_month: StrictBool
    threshold_two_weeks: StrictBool
    threshold_one_week: StrictBool
    threshold_three_days: StrictBool
    threshold_one_day: StrictBool
    threshold_due_date: StrictBool
    threshold_overdue_daily: StrictBool


class SubscriptionKeys(BaseModel):
    p256dh: str = Field(..., min_length=1)
    auth: str = Field(..., min_length=1)


class SubscribeRequest(BaseModel):
    endpoint: str = Field(..., min_length=1)
    keys: SubscriptionKeys
    user_agent: Optional[str] = Field(None, validation_alias=AliasChoices("user_agent", "userAgent"))


class UnsubscribeRequest(BaseModel):
    endpoint: str = Field(..., min_length=1)


def _settings_to_dict(row: Optional[NotificationSettings]) -> Optional[dict]:
    if row is None:
        return None
    data = {"id": row.id, "enabled": bool(row.enabled)}
    for threshold in ThresholdType:
        data[threshold.settings_field] = bool(getattr(row, threshold.settings_field))
    data["updated_at"] = row.updated_at.isoformat() if row.updated_at else None
    return data


def _subscription_to_dict(sub: NotificationSubscription) -> dict:
    return {
        "id": sub.id,
        "endpoint": sub.endpoint,
        "user_agent": sub.user_agent,
        "created_at": sub.created_at.isoformat() if sub.created_at else None,
        "last_used_at": sub.last_used_at.isoformat() if sub.last_used_at else None,
    }


@router.get("/settings")
async def get_notification_settings(request: Request):
    """Get notification settings, registered devices and the VAPID public key."""
    store = request.app.state.notification_store
    try:
        settings_row = await store.get_notification_settings()
        subscriptions = await store.list_subscriptions()
    except Exception as e:
        log_and_raise_500(e, "fetch notification settings")

    return {
        "settings": _settings_to_dict(settings_row),
        "subscriptions": [_subscription_to_dict(s) for s in subscriptions],
        "vapid_public_key": request.app.state.vapid_public_key,
    }


@router.put("/settings")
async def update_notification_settings(body: NotificationSettingsRequest, request: Request):
    """Replace the global notification switches."""
    store = request.app.state.notification_store
    try:
        updated = await store.update_notification_settings(body.model_dump())
    except Exception as e:
        log_and_raise_500(e, "update notification settings")

    logger.info(f"Notification settings updated (enabled={updated.enabled})")
    return {"success": True, "settings": _settings_to_dict(updated)}


@router.post("/subscribe")
async def subscribe(body: SubscribeRequest, request: Request):
    """Register a browser push subscription. Re-registering an endpoint refreshes it."""
    store = request.app.state.notification_store
    try:
        subscription, created = await store.register_subscription(
            endpoint=body.endpoint,
            p256dh_key=body.keys.p256dh,
            auth_key=body.keys.auth,
            user_agent=body.user_agent or request.headers.get("user-agent"),
        )
    except Exception as e:
        log_and_raise_500(e, "create subscription")

    if created:
        logger.info(f"Registered push subscription {subscription.id}")
    return {"success": True, "created": created, "subscription": _subscription_to_dict(subscription)}


@router.delete("/unsubscribe")
async def unsubscribe(body: UnsubscribeRequest, request: Request):
    """Remove a push subscription by endpoint."""
    store = request.app.state.notification_store
    try:
        deleted = await store.delete_subscription_by_endpoint(body.endpoint)
    except Exception as e:
        log_and_raise_500(e, "delete subscription")

    if not deleted:
        raise_error(ErrorCode.SUBSCRIPTION_NOT_FOUND, "Subscription not found", status_code=404, log=False)
    return {"success": True}


@router.delete("/subscriptions/{subscription_id}")
async def delete_subscription(subscription_id: int, request: Request):
    """Remove a push subscription by id."""
    store = request.app.state.notification_store
    try:
        deleted = await store.delete_subscription(subscription_id)
    except Exception as e:
        log_and_raise_500(e, "delete subscription")

    if not deleted:
        raise_error(ErrorCode.SUBSCRIPTION_NOT_FOUND, "Subscription not found", status_code=404, log=False)
    return {"success": True}


@router.post("/test")
async def send_test_notification(request: Request):
    """Send the fixed test notification to every registered device."""
    delivery = request.app.state.delivery_service
    try:
        sent_count = await delivery.send_test_broadcast()
    except Exception as e:
        log_and_raise_500(e, "send test notification")

    return {
        "success": True,
        "message": f"Test notification sent to {sent_count} device(s)",
        "sent_count": sent_count,
    }


@router.post("/check")
async def run_notification_check(request: Request):
    """Run the due-task check now, outside the schedule."""
    scheduler = request.app.state.notification_scheduler
    logger.info("Manually triggering notification check...")
    try:
        summary = await scheduler.run_check_now()
    except Exception as e:
        log_and_raise_500(e, "check notifications")

    return {"success": True, "message": "Notification check completed", "summary": summary}


@router.get("/scheduler")
async def get_scheduler_status(request: Request):
    """Report whether the recurring check is active and when it runs next."""
    return request.app.state.notification_scheduler.get_status()
