"""Order notifications sent to the store owner after a webhook is processed.

Delivery is best effort: one attempt, failures are logged and never reach the
webhook response.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from html import escape
from typing import Any, Protocol
from uuid import UUID

import httpx

from ordersync.core import database
from ordersync.core.config import settings
from ordersync.core.errors import NotificationError
from ordersync.repositories.notification_setting_repository import (
    NotificationSettingRepository,
)
from ordersync.schemas.ingestion import OrderNotificationSummary
from ordersync.tasks import enqueue_order_notification

logger = logging.getLogger(__name__)

MAX_LISTED_ITEMS = 10

TRANSPORT_INLINE = "inline"
TRANSPORT_QUEUE = "queue"


@dataclass
class ChannelResult:
    success: bool
    error: str | None = None


class NotificationChannel(Protocol):
    async def send(self, destination: str, summary: OrderNotificationSummary) -> ChannelResult:
        ...


def format_order_message(summary: OrderNotificationSummary) -> str:
    """Render an order summary as a Telegram HTML message."""
    heading = "🛒 New order" if summary.is_new else "✏️ Order updated"
    lines = [
        f"<b>{heading} #{escape(summary.order_number)}</b>",
        f"Store: {escape(summary.integration)}",
        f"Customer: {escape(summary.customer_name or '-')} ({escape(summary.customer_email)})",
        f"Status: {escape(summary.status)}",
        f"Total: <b>{escape(summary.total)} {escape(summary.currency)}</b>",
    ]
    if summary.items:
        lines.append("")
        lines.append("<b>Items:</b>")
        for item in summary.items[:MAX_LISTED_ITEMS]:
            lines.append(f"• {escape(item.name)} × {item.quantity} @ {escape(item.price)}")
        hidden = len(summary.items) - MAX_LISTED_ITEMS
        if hidden > 0:
            lines.append(f"… and {hidden} more")
    return "\n".join(lines)


class TelegramChannel:
    """Sends messages through the Telegram Bot API ``sendMessage`` method."""

    def __init__(
        self,
        bot_token: str | None = None,
        api_base: str | None = None,
        timeout: float | None = None,
    ):
        self.bot_token = settings.TELEGRAM_BOT_TOKEN if bot_token is None else bot_token
        self.api_base = (api_base or settings.TELEGRAM_API_BASE).rstrip("/")
        self.timeout = settings.NOTIFICATION_TIMEOUT_SECONDS if timeout is None else timeout

    async def send(self, destination: str, summary: OrderNotificationSummary) -> ChannelResult:
        if not self.bot_token:
            return ChannelResult(success=False, error="Telegram bot token is not configured")

        url = f"{self.api_base}/bot{self.bot_token}/sendMessage"
        payload = {
            "chat_id": destination,
            "text": format_order_message(summary),
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(url, json=payload)
        except httpx.HTTPError as exc:
            return ChannelResult(success=False, error=str(exc)[:500])

        if 200 <= resp.status_code < 300:
            return ChannelResult(success=True)
        return ChannelResult(
            success=False,
            error=f"Telegram API returned {resp.status_code}: {resp.text[:500]}",
        )


class NotificationDispatcher:
    """Looks up where an owner wants notifications and hands the summary off."""

    def __init__(
        self,
        channel: NotificationChannel | None = None,
        transport: str | None = None,
    ):
        self.channel = channel or TelegramChannel()
        self.transport = transport or settings.NOTIFICATION_TRANSPORT

    def get_destination(self, owner_user_id: UUID) -> str | None:
        # Runs after the response, so the request session is already closed.
        db = database.SessionLocal()
        try:
            return NotificationSettingRepository(db).get_destination(owner_user_id)
        finally:
            db.close()

    async def notify(self, owner_user_id: UUID, summary: OrderNotificationSummary) -> None:
        """Deliver ``summary`` to the owner. Never raises."""
        try:
            if self.transport == TRANSPORT_QUEUE:
                await self._enqueue(owner_user_id, summary)
                return
            await self.deliver(owner_user_id, summary)
        except NotificationError as exc:
            logger.warning("Notification for order %s not sent: %s", summary.order_id, exc)
        except Exception:
            logger.exception("Unexpected error notifying about order %s", summary.order_id)

    async def deliver(self, owner_user_id: UUID, summary: OrderNotificationSummary) -> bool:
        """Send one notification directly through the channel.

        Returns False when the owner has no enabled destination. Raises
        ``NotificationError`` if the channel reports a failure.
        """
        destination = self.get_destination(owner_user_id)
        if destination is None:
            logger.debug("No notification destination for user %s", owner_user_id)
            return False

        result = await self.channel.send(destination, summary)
        if not result.success:
            raise NotificationError(result.error or "Notification channel failed")

        logger.info("Sent order notification for %s to %s", summary.order_id, destination)
        return True

    async def _enqueue(self, owner_user_id: UUID, summary: OrderNotificationSummary) -> None:
        payload: dict[str, Any] = summary.model_dump(mode="json")
        await enqueue_order_notification(str(owner_user_id), payload)
        logger.debug("Queued order notification for %s", summary.order_id)
