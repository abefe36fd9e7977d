"""
Push delivery to registered subscriptions.
"""
from loguru import logger

from mechmate.models import NotificationSubscription
from mechmate.services.message_composer import PushMessage, compose_test_message
from mechmate.services.notification_store import NotificationStore
from mechmate.services.push_transport import BasePushTransport


class DeliveryService:
    """
    Sends push messages to every subscription and prunes dead ones.
    """

    def __init__(self, store: NotificationStore, transport: BasePushTransport):
        self.store = store
        self.transport = transport

    async def send_notification(self, subscription: NotificationSubscription, message: PushMessage) -> bool:
        """
        Send one message to one subscription.

        Touches last_used_at on success (best effort). Deletes the subscription when the
        push service reports it gone or invalid.

        Returns:
            True if the push service accepted the message
        """
        result = await self.transport.send(
            subscription.endpoint,
            {"p256dh": subscription.p256dh_key, "auth": subscription.auth_key},
            message.model_dump_json(),
        )

        if result.success:
            try:
                await self.store.touch_subscription(subscription.id)
            except Exception as e:
                # Bookkeeping only; the push was already accepted
                logger.warning(f"Failed to update last_used_at for subscription {subscription.id}: {e}")
            return True

        if result.is_permanently_invalid:
            await self.store.delete_subscription(subscription.id)
            logger.info(
                f"Removed invalid subscription {subscription.id} "
                f"(status={result.status_code}): {result.error}"
            )
        else:
            logger.warning(f"Failed to send notification to subscription {subscription.id}: {result.error}")
        return False

    async def broadcast_notification(self, message: PushMessage) -> int:
        """
        Send a message to all subscriptions, one after another.

        A failure on one subscription, including a store error while
        touching or deleting it, never stops delivery to the rest.

        Returns:
            Number of subscriptions that accepted the message
        """
        subscriptions = await self.store.list_subscriptions()
        success_count = 0

        for subscription in subscriptions:
            try:
                if await self.send_notification(subscription, message):
                    success_count += 1
            except Exception as e:
                logger.error(f"Error delivering to subscription {subscription.id}: {type(e).__name__}: {e}")

        logger.info(f"Sent notification to {success_count}/{len(subscriptions)} subscriptions")
        return success_count

    async def send_test_broadcast(self) -> int:
        """Broadcast the fixed test message. Returns the success count."""
        return await self.broadcast_notification(compose_test_message())
