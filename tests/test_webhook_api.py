"""End-to-end tests for the order webhook endpoints."""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from ordersync.main import app
from ordersync.models.customer import Customer
from ordersync.models.integration import IntegrationProviderType
from ordersync.models.order import Order, OrderItem
from ordersync.models.webhook_log import WebhookLog
from ordersync.repositories.notification_setting_repository import (
    NotificationSettingRepository,
)
from ordersync.routers.webhooks import get_notification_dispatcher
from ordersync.services.line_item_replacer import LineItemReplacer
from ordersync.services.notification_dispatcher import ChannelResult, NotificationDispatcher
from ordersync.services.order_reconciler import OrderReconciler
from tests.conftest import (
    OWNER_ID,
    SHOPIFY_SECRET,
    WOOCOMMERCE_SECRET,
    RecordingChannel,
    create_integration,
    shopify_order_payload,
    sign,
    to_body,
    woocommerce_order_payload,
)

SHOPIFY_URL = "/v1/webhooks/shopify/orders"
WOOCOMMERCE_URL = "/v1/webhooks/woocommerce/orders"


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def client(channel):
    """Create test client whose notifications go to the recording channel."""
    dispatcher = NotificationDispatcher(channel=channel, transport="inline")
    app.dependency_overrides[get_notification_dispatcher] = lambda: dispatcher
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_notification_dispatcher, None)


@pytest.fixture
def shop(db_session):
    integration = create_integration(db_session)
    NotificationSettingRepository(db_session).upsert(OWNER_ID, telegram_chat_id="424242")
    return integration


def post_shopify(client, payload, secret=SHOPIFY_SECRET, domain="acme.myshopify.com"):
    body = to_body(payload)
    return client.post(
        SHOPIFY_URL,
        content=body,
        headers={
            "Content-Type": "application/json",
            "X-Shopify-Hmac-Sha256": sign(body, secret),
            "X-Shopify-Shop-Domain": domain,
            "X-Shopify-Topic": "orders/create",
        },
    )


def assert_no_cache(response):
    assert response.headers["cache-control"] == "no-store, no-cache, must-revalidate"
    assert response.headers["pragma"] == "no-cache"
    assert response.headers["expires"] == "0"


class TestShopifyWebhook:
    def test_first_delivery_creates_everything(self, client, shop, channel, db_session):
        response = post_shopify(client, shopify_order_payload())

        assert response.status_code == 200
        assert_no_cache(response)
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Order created successfully"
        data = body["data"]
        assert data["externalOrderId"] == "820982911946154508"
        assert data["status"] == "paid"
        assert data["totalAmount"] == 41.5
        assert data["itemsCount"] == 2
        assert data["isNewOrder"] is True

        order = db_session.query(Order).one()
        assert str(order.id) == data["orderId"]
        assert str(order.customer_id) == data["customerId"]
        assert order.integration_id == shop.id
        customer = db_session.query(Customer).one()
        assert customer.total_order == 1
        assert customer.source == "shopify"
        assert db_session.query(OrderItem).count() == 2

        assert len(channel.sent) == 1
        destination, summary = channel.sent[0]
        assert destination == "424242"
        assert summary.is_new is True
        assert summary.order_number == "820982911946154508"
        assert summary.total == "41.50"
        assert len(summary.items) == 2

    def test_duplicate_delivery_is_idempotent(self, client, shop, channel, db_session):
        payload = shopify_order_payload()
        first = post_shopify(client, payload).json()["data"]

        second = post_shopify(client, payload)

        assert second.status_code == 200
        data = second.json()["data"]
        assert data["isNewOrder"] is False
        assert data["orderId"] == first["orderId"]
        assert data["customerId"] == first["customerId"]
        assert data["itemsCount"] == 2
        assert db_session.query(Order).count() == 1
        assert db_session.query(OrderItem).count() == 2
        assert db_session.query(Customer).one().total_order == 1

    def test_many_deliveries_leave_one_order(self, client, shop, db_session):
        payload = shopify_order_payload()
        results = [post_shopify(client, payload).json()["data"] for _ in range(4)]

        assert [r["isNewOrder"] for r in results] == [True, False, False, False]
        assert db_session.query(Order).count() == 1
        assert db_session.query(Customer).one().total_order == 1

    def test_update_delivery_replaces_items(self, client, shop, channel, db_session):
        post_shopify(client, shopify_order_payload())
        updated = shopify_order_payload(
            financial_status="refunded",
            total_price="17.00",
            updated_at="2026-10-03T10:00:00-04:00",
            line_items=[
                {"title": "Coffee Beans", "sku": "BEAN-1KG", "quantity": 1, "price": "17.00"}
            ],
        )

        response = post_shopify(client, updated)

        data = response.json()["data"]
        assert response.json()["message"] == "Order updated successfully"
        assert data["isNewOrder"] is False
        assert data["status"] == "refunded"
        assert data["totalAmount"] == 17.0
        assert data["itemsCount"] == 1
        assert [i.product_sku for i in db_session.query(OrderItem).all()] == ["BEAN-1KG"]
        assert len(channel.sent) == 2
        assert channel.sent[1][1].is_new is False

    def test_second_order_of_same_customer_counts(self, client, shop, db_session):
        post_shopify(client, shopify_order_payload(order_id=1))
        post_shopify(client, shopify_order_payload(order_id=2))

        assert db_session.query(Order).count() == 2
        assert db_session.query(Customer).one().total_order == 2

    def test_stale_delivery_changes_nothing(self, client, shop, channel, db_session):
        post_shopify(client, shopify_order_payload(financial_status="refunded"))
        stale = shopify_order_payload(
            financial_status="pending",
            updated_at="2026-09-30T10:00:00-04:00",
            line_items=[],
        )

        response = post_shopify(client, stale)

        assert response.status_code == 200
        assert response.json()["message"] == "Stale order update ignored"
        assert response.json()["data"]["status"] == "refunded"
        assert response.json()["data"]["itemsCount"] == 2
        assert db_session.query(OrderItem).count() == 2
        assert len(channel.sent) == 1

    def test_bad_signature_rejected_without_side_effects(
        self, client, shop, channel, db_session
    ):
        response = post_shopify(client, shopify_order_payload(), secret="not-the-secret")

        assert response.status_code == 401
        assert_no_cache(response)
        assert response.json() == {
            "error": "no_matching_integration",
            "message": "No matching integration found for this request",
        }
        assert db_session.query(Order).count() == 0
        assert db_session.query(Customer).count() == 0
        assert db_session.query(OrderItem).count() == 0
        assert channel.sent == []

    def test_missing_signature_headers(self, client, shop):
        response = client.post(
            SHOPIFY_URL,
            content=to_body(shopify_order_payload()),
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 401
        assert response.json()["error"] == "missing_signature"

    def test_no_integration_configured(self, client):
        response = post_shopify(client, shopify_order_payload())

        assert response.status_code == 404
        assert response.json()["error"] == "integration_not_configured"

    def test_validation_error_reports_field(self, client, shop, db_session, channel):
        payload = shopify_order_payload()
        payload["customer"]["email"] = None
        payload["email"] = None

        response = post_shopify(client, payload)

        assert response.status_code == 400
        assert response.json()["error"] == "missing_email"
        assert response.json()["field"] == "email"
        assert db_session.query(Order).count() == 0
        assert channel.sent == []

    def test_invalid_json(self, client, shop):
        body = b'{"id": 1,'
        response = client.post(
            SHOPIFY_URL,
            content=body,
            headers={
                "Content-Type": "application/json",
                "X-Shopify-Hmac-Sha256": sign(body, SHOPIFY_SECRET),
                "X-Shopify-Shop-Domain": "acme.myshopify.com",
            },
        )

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_json"
        assert_no_cache(response)

    def test_invalid_content_type(self, client, shop):
        response = client.post(
            SHOPIFY_URL, content=b"id=1", headers={"Content-Type": "text/plain"}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_content_type"

    def test_database_failure_is_generic_500(self, client, shop, channel):
        with patch.object(
            OrderReconciler,
            "reconcile",
            side_effect=OperationalError("INSERT INTO orders", {}, Exception("disk I/O error")),
        ):
            response = post_shopify(client, shopify_order_payload())

        assert response.status_code == 500
        assert response.json() == {"error": "database_error", "message": "Failed to save order"}
        assert "disk" not in response.text
        assert channel.sent == []

    def test_unexpected_failure_is_recorded_500(self, client, shop, channel, db_session):
        with patch.object(LineItemReplacer, "replace", side_effect=RuntimeError("boom")):
            response = post_shopify(client, shopify_order_payload())

        assert response.status_code == 500
        assert response.json() == {"error": "database_error", "message": "Failed to process order"}
        assert_no_cache(response)
        assert channel.sent == []
        errors = db_session.query(WebhookLog).filter(WebhookLog.event == "error").all()
        assert len(errors) == 1
        assert errors[0].data["reason"] == "RuntimeError: boom"

    def test_oversized_quantity_rejected(self, client, shop, db_session):
        payload = shopify_order_payload(
            line_items=[{"title": "Mug", "sku": "MUG-01", "quantity": 10**30, "price": "1.00"}]
        )

        response = post_shopify(client, payload)

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_quantity"
        assert db_session.query(OrderItem).count() == 0

    def test_notification_failure_does_not_change_response(self, client, shop, channel):
        channel.result = ChannelResult(success=False, error="chat not found")

        response = post_shopify(client, shopify_order_payload())

        assert response.status_code == 200
        assert len(channel.sent) == 1

    def test_no_notification_without_destination(self, client, channel, db_session):
        create_integration(db_session)

        response = post_shopify(client, shopify_order_payload())

        assert response.status_code == 200
        assert channel.sent == []

    @pytest.mark.parametrize("method", ["get", "put", "delete", "patch"])
    def test_other_methods_not_allowed(self, client, method):
        response = getattr(client, method)(SHOPIFY_URL)

        assert response.status_code == 405
        assert response.json()["error"] == "method_not_allowed"
        assert response.headers["allow"] == "POST"
        assert_no_cache(response)


class TestWooCommerceWebhook:
    @pytest.fixture
    def store(self, db_session):
        integration = create_integration(
            db_session,
            IntegrationProviderType.WOOCOMMERCE,
            secret=WOOCOMMERCE_SECRET,
            domain="shop.example.com",
        )
        NotificationSettingRepository(db_session).upsert(OWNER_ID, telegram_chat_id="424242")
        return integration

    def test_header_secret_delivery(self, client, store, channel, db_session):
        response = client.post(
            WOOCOMMERCE_URL,
            content=to_body(woocommerce_order_payload()),
            headers={"Content-Type": "application/json", "X-Webhook-Secret": WOOCOMMERCE_SECRET},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["externalOrderId"] == "727"
        assert data["status"] == "processing"
        assert data["isNewOrder"] is True
        assert db_session.query(Customer).one().source == "woocommerce"
        assert channel.sent[0][1].integration == "shop.example.com"

    def test_query_secret_delivery(self, client, store):
        response = client.post(
            f"{WOOCOMMERCE_URL}?secret={WOOCOMMERCE_SECRET}",
            content=to_body(woocommerce_order_payload()),
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 200

    def test_signature_delivery(self, client, store, db_session):
        body = to_body(woocommerce_order_payload())
        response = client.post(
            WOOCOMMERCE_URL,
            content=body,
            headers={
                "Content-Type": "application/json",
                "X-WC-Webhook-Signature": sign(body, WOOCOMMERCE_SECRET),
            },
        )

        assert response.status_code == 200
        assert db_session.query(Order).one().integration_id == store.id

    def test_wrong_secret(self, client, store, channel, db_session):
        response = client.post(
            WOOCOMMERCE_URL,
            content=to_body(woocommerce_order_payload()),
            headers={"Content-Type": "application/json", "X-Webhook-Secret": "wh_wrong"},
        )

        assert response.status_code == 401
        assert db_session.query(Order).count() == 0
        assert channel.sent == []

    def test_missing_credentials_lists_channels(self, client, store):
        response = client.post(
            WOOCOMMERCE_URL,
            content=to_body(woocommerce_order_payload()),
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 401
        assert response.json()["error"] == "missing_webhook_secret"
        assert "query:webhook_secret" in response.json()["message"]
        assert WOOCOMMERCE_SECRET not in response.text

    def test_ping_acknowledged_without_processing(self, client, store, db_session):
        response = client.post(
            WOOCOMMERCE_URL,
            content=b"webhook_id=15",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert_no_cache(response)
        assert db_session.query(Order).count() == 0

    @pytest.mark.parametrize("method", ["get", "post"])
    def test_validate_endpoint(self, client, method):
        response = getattr(client, method)(f"{WOOCOMMERCE_URL}/validate")

        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_get_not_allowed(self, client):
        response = client.get(WOOCOMMERCE_URL)

        assert response.status_code == 405


class TestAuditTrail:
    def test_successful_request_is_recorded(self, client, shop):
        response = post_shopify(client, shopify_order_payload())
        request_id = response.headers["x-request-id"]

        logs = client.get("/v1/webhook_logs/", params={"request_id": request_id}).json()

        events = {log["event"] for log in logs}
        assert events == {"request", "processing", "response"}
        steps = [log["step"] for log in reversed(logs) if log["event"] == "processing"]
        assert steps == [
            "received",
            "signature_check",
            "authenticated",
            "normalized",
            "order_reconciled",
            "customer_reconciled",
            "items_replaced",
            "responded",
        ]
        response_log = next(log for log in logs if log["event"] == "response")
        assert response_log["status_code"] == 200
        assert response_log["processing_time_ms"] is not None

    def test_failure_is_recorded_with_timing(self, client, shop, db_session):
        response = post_shopify(client, shopify_order_payload(), secret="wrong")
        request_id = response.headers["x-request-id"]

        error = (
            db_session.query(WebhookLog)
            .filter(WebhookLog.request_id == request_id, WebhookLog.event == "error")
            .one()
        )
        assert error.status_code == 401
        assert error.processing_time_ms is not None
        assert error.data["state"] == "auth_failed"

    def test_secrets_are_masked_in_logs(self, client, db_session):
        create_integration(
            db_session, IntegrationProviderType.WOOCOMMERCE, secret=WOOCOMMERCE_SECRET
        )
        client.post(
            WOOCOMMERCE_URL,
            content=to_body(woocommerce_order_payload()),
            headers={"Content-Type": "application/json", "X-Webhook-Secret": WOOCOMMERCE_SECRET},
        )
        client.post(
            f"{WOOCOMMERCE_URL}?webhook_secret={WOOCOMMERCE_SECRET}&source=wp",
            content=to_body(woocommerce_order_payload()),
            headers={"Content-Type": "application/json"},
        )

        logs = db_session.query(WebhookLog).all()
        for log in logs:
            assert WOOCOMMERCE_SECRET not in str(log.data)
            assert WOOCOMMERCE_SECRET not in (log.message or "")
        request_messages = [log.message for log in logs if log.event == "request"]
        assert any("webhook_secret=wh_" in m and "source=wp" in m for m in request_messages)
        assert WOOCOMMERCE_SECRET not in client.get("/v1/webhook_logs/").text

    def test_trail_endpoint(self, client, shop):
        response = post_shopify(client, shopify_order_payload())
        request_id = response.headers["x-request-id"]

        trail = client.get(f"/v1/webhook_logs/{request_id}").json()

        assert trail[0]["event"] == "request"
        assert trail[-1]["event"] == "processing"
        assert trail[-1]["step"] == "responded"


class TestServiceEndpoints:
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["app"] == "ordersync"

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}
