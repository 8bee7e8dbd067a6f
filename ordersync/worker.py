import logging
from typing import Any
from uuid import UUID

from ordersync.core.errors import NotificationError
from ordersync.schemas.ingestion import OrderNotificationSummary
from ordersync.services.notification_dispatcher import TRANSPORT_INLINE, NotificationDispatcher
from ordersync.tasks import redis_settings

logger = logging.getLogger(__name__)


async def send_order_notification_task(
    ctx: dict[str, Any], owner_user_id: str, summary: dict[str, Any]
) -> bool:
    """Background task: deliver one queued order notification.

    Runs once; a failed delivery is logged and not retried.
    """
    dispatcher = NotificationDispatcher(transport=TRANSPORT_INLINE)
    order_summary = OrderNotificationSummary.model_validate(summary)
    try:
        return await dispatcher.deliver(UUID(owner_user_id), order_summary)
    except NotificationError as exc:
        logger.warning(
            "Queued notification for order %s failed: %s", order_summary.order_id, exc
        )
        return False


class WorkerSettings:
    functions = [send_order_notification_task]
    redis_settings = redis_settings
    max_tries = 1
