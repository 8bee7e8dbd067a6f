"""Tests for order notifications."""

import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from ordersync.core.errors import NotificationError
from ordersync.repositories.notification_setting_repository import (
    NotificationSettingRepository,
)
from ordersync.schemas.ingestion import OrderNotificationItem, OrderNotificationSummary
from ordersync.services.notification_dispatcher import (
    MAX_LISTED_ITEMS,
    ChannelResult,
    NotificationDispatcher,
    TelegramChannel,
    format_order_message,
)
from tests.conftest import OWNER_ID, RecordingChannel


def make_summary(is_new: bool = True, items: int = 2) -> OrderNotificationSummary:
    return OrderNotificationSummary(
        order_id=uuid.uuid4(),
        order_number="1001",
        customer_name="Jon <Snow>",
        customer_email="jon@example.com",
        total="41.50",
        currency="USD",
        status="paid",
        integration="acme.myshopify.com",
        is_new=is_new,
        items=[
            OrderNotificationItem(name=f"Item {i}", quantity=1, price="1.00")
            for i in range(items)
        ],
    )


class TestFormatOrderMessage:
    def test_new_order(self):
        text = format_order_message(make_summary())

        assert "New order #1001" in text
        assert "41.50 USD" in text
        assert "Item 0" in text and "Item 1" in text

    def test_updated_order(self):
        assert "Order updated #1001" in format_order_message(make_summary(is_new=False))

    def test_html_is_escaped(self):
        assert "Jon &lt;Snow&gt;" in format_order_message(make_summary())

    def test_long_item_lists_are_truncated(self):
        text = format_order_message(make_summary(items=MAX_LISTED_ITEMS + 3))

        assert f"Item {MAX_LISTED_ITEMS - 1}" in text
        assert f"Item {MAX_LISTED_ITEMS}" not in text
        assert "and 3 more" in text


class TestTelegramChannel:
    @pytest.mark.asyncio
    async def test_send_success(self):
        mock_response = MagicMock(status_code=200, text='{"ok":true}')
        mock_client = MagicMock()
        mock_client.post = AsyncMock(return_value=mock_response)
        mock_client.__aenter__ = AsyncMock(return_value=mock_client)
        mock_client.__aexit__ = AsyncMock(return_value=False)

        with patch(
            "ordersync.services.notification_dispatcher.httpx.AsyncClient",
            return_value=mock_client,
        ):
            channel = TelegramChannel(bot_token="123:abc", api_base="https://tg.test/")
            result = await channel.send("424242", make_summary())

        assert result == ChannelResult(success=True)
        url = mock_client.post.call_args.args[0]
        payload = mock_client.post.call_args.kwargs["json"]
        assert url == "https://tg.test/bot123:abc/sendMessage"
        assert payload["chat_id"] == "424242"
        assert payload["parse_mode"] == "HTML"

    @pytest.mark.asyncio
    async def test_send_api_error(self):
        mock_response = MagicMock(status_code=400, text="Bad Request: chat not found")
        mock_client = MagicMock()
        mock_client.post = AsyncMock(return_value=mock_response)
        mock_client.__aenter__ = AsyncMock(return_value=mock_client)
        mock_client.__aexit__ = AsyncMock(return_value=False)

        with patch(
            "ordersync.services.notification_dispatcher.httpx.AsyncClient",
            return_value=mock_client,
        ):
            result = await TelegramChannel(bot_token="123:abc").send("1", make_summary())

        assert result.success is False
        assert "chat not found" in result.error

    @pytest.mark.asyncio
    async def test_send_network_error(self):
        mock_client = MagicMock()
        mock_client.post = AsyncMock(side_effect=httpx.ConnectError("connection refused"))
        mock_client.__aenter__ = AsyncMock(return_value=mock_client)
        mock_client.__aexit__ = AsyncMock(return_value=False)

        with patch(
            "ordersync.services.notification_dispatcher.httpx.AsyncClient",
            return_value=mock_client,
        ):
            result = await TelegramChannel(bot_token="123:abc").send("1", make_summary())

        assert result.success is False
        assert "connection refused" in result.error

    @pytest.mark.asyncio
    async def test_send_without_token(self):
        with patch("ordersync.services.notification_dispatcher.httpx.AsyncClient") as mock_cls:
            result = await TelegramChannel(bot_token="").send("1", make_summary())

        assert result.success is False
        mock_cls.assert_not_called()


class TestNotificationDispatcher:
    @pytest.mark.asyncio
    async def test_delivers_to_owner_destination(self, db_session):
        NotificationSettingRepository(db_session).upsert(OWNER_ID, telegram_chat_id="777")
        channel = RecordingChannel()

        await NotificationDispatcher(channel=channel, transport="inline").notify(
            OWNER_ID, make_summary()
        )

        assert [destination for destination, _ in channel.sent] == ["777"]

    @pytest.mark.asyncio
    async def test_disabled_setting_skips(self, db_session):
        NotificationSettingRepository(db_session).upsert(
            OWNER_ID, telegram_chat_id="777", enabled=False
        )
        channel = RecordingChannel()

        await NotificationDispatcher(channel=channel, transport="inline").notify(
            OWNER_ID, make_summary()
        )

        assert channel.sent == []

    @pytest.mark.asyncio
    async def test_deliver_raises_on_channel_failure(self, db_session):
        NotificationSettingRepository(db_session).upsert(OWNER_ID, telegram_chat_id="777")
        channel = RecordingChannel(ChannelResult(success=False, error="blocked by user"))
        dispatcher = NotificationDispatcher(channel=channel, transport="inline")

        with pytest.raises(NotificationError, match="blocked by user"):
            await dispatcher.deliver(OWNER_ID, make_summary())

    @pytest.mark.asyncio
    async def test_notify_never_raises(self, db_session):
        NotificationSettingRepository(db_session).upsert(OWNER_ID, telegram_chat_id="777")
        channel = MagicMock()
        channel.send = AsyncMock(side_effect=RuntimeError("boom"))

        await NotificationDispatcher(channel=channel, transport="inline").notify(
            OWNER_ID, make_summary()
        )

        channel.send.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_queue_transport_enqueues_job(self):
        channel = RecordingChannel()
        summary = make_summary()

        with patch(
            "ordersync.services.notification_dispatcher.enqueue_order_notification",
            new_callable=AsyncMock,
        ) as mock_enqueue:
            await NotificationDispatcher(channel=channel, transport="queue").notify(
                OWNER_ID, summary
            )

        mock_enqueue.assert_awaited_once()
        owner, payload = mock_enqueue.call_args.args
        assert owner == str(OWNER_ID)
        assert payload["order_id"] == str(summary.order_id)
        assert channel.sent == []

    @pytest.mark.asyncio
    async def test_queue_failure_is_swallowed(self):
        with patch(
            "ordersync.services.notification_dispatcher.enqueue_order_notification",
            new_callable=AsyncMock,
            side_effect=ConnectionError("redis down"),
        ):
            await NotificationDispatcher(channel=RecordingChannel(), transport="queue").notify(
                OWNER_ID, make_summary()
            )
