"""Shared test fixtures for all test modules."""

import base64
import contextlib
import hashlib
import hmac
import json
import uuid
from typing import Any

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ordersync.core import database as db_module
from ordersync.core.database import Base
from ordersync.models.integration import Integration, IntegrationProviderType
from ordersync.repositories.integration_repository import IntegrationRepository
from ordersync.schemas.ingestion import OrderNotificationSummary
from ordersync.schemas.integration import IntegrationCreate
from ordersync.services.audit_service import InMemoryAuditSink
from ordersync.services.notification_dispatcher import ChannelResult

# Create an in-memory SQLite engine with StaticPool so all connections
# share the same database state and there are no file-locking issues.
_test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_test_engine)

# Store owners used across tests
OWNER_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
OTHER_OWNER_ID = uuid.UUID("00000000-0000-0000-0000-000000000002")

SHOPIFY_SECRET = "shpss_test_secret_a"
WOOCOMMERCE_SECRET = "wh_0123456789abcdef0123456789abcdef01234567"


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test and truncate all data after.

    Patches the module-level engine and SessionLocal so all application code
    uses the in-memory test database. Clears data after each test.
    """
    # Patch module-level engine and session factory
    original_engine = db_module.engine
    original_session = db_module.SessionLocal
    db_module.engine = _test_engine
    db_module.SessionLocal = _TestSessionLocal

    Base.metadata.create_all(bind=_test_engine)

    yield
    with _test_engine.connect() as conn:
        conn.execute(text("PRAGMA foreign_keys = OFF"))
        for table in reversed(Base.metadata.sorted_tables):
            with contextlib.suppress(OperationalError):
                conn.execute(table.delete())
        conn.execute(text("PRAGMA foreign_keys = ON"))
        conn.commit()

    # Restore originals
    db_module.engine = original_engine
    db_module.SessionLocal = original_session


@pytest.fixture
def db_session():
    """Create a database session for direct repository testing."""
    gen = db_module.get_db()
    db = next(gen)
    try:
        yield db
    finally:
        for _ in gen:
            pass


@pytest.fixture
def audit_sink():
    return InMemoryAuditSink()


def create_integration(
    db,
    provider: IntegrationProviderType = IntegrationProviderType.SHOPIFY,
    *,
    secret: str | None = SHOPIFY_SECRET,
    domain: str = "acme.myshopify.com",
    user_id: uuid.UUID = OWNER_ID,
    is_active: bool = True,
) -> Integration:
    return IntegrationRepository(db).create(
        IntegrationCreate(
            user_id=user_id,
            provider_type=provider,
            domain=domain,
            webhook_secret=secret,
            is_active=is_active,
        )
    )


def sign(raw_body: bytes, secret: str) -> str:
    """Base64 HMAC-SHA256, as Shopify and WooCommerce sign deliveries."""
    return base64.b64encode(hmac.new(secret.encode(), raw_body, hashlib.sha256).digest()).decode()


def to_body(payload: dict[str, Any]) -> bytes:
    return json.dumps(payload).encode("utf-8")


def shopify_order_payload(
    order_id: Any = 820982911946154508,
    *,
    email: str = "jon@example.com",
    financial_status: str = "paid",
    total_price: str = "41.50",
    updated_at: str = "2026-10-01T10:00:00-04:00",
    line_items: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    if line_items is None:
        line_items = [
            {"title": "Travel Mug", "sku": "MUG-01", "quantity": 2, "price": "12.25"},
            {"title": "Coffee Beans", "sku": "BEAN-1KG", "quantity": 1, "price": "17.00"},
        ]
    return {
        "id": order_id,
        "email": email,
        "financial_status": financial_status,
        "total_price": total_price,
        "currency": "usd",
        "created_at": "2026-10-01T09:00:00-04:00",
        "updated_at": updated_at,
        "customer": {
            "first_name": "Jon",
            "last_name": "Snow",
            "email": email,
            "phone": None,
        },
        "billing_address": {
            "first_name": "Jon",
            "last_name": "Snow",
            "address1": "1 Wall St",
            "city": "Winterfell",
            "country": "US",
            "zip": "10005",
            "phone": "+1 555 0100",
        },
        "shipping_address": {
            "first_name": "Jon",
            "last_name": "Snow",
            "address1": "1 Wall St",
            "city": "Winterfell",
            "country": "US",
            "zip": "10005",
        },
        "line_items": line_items,
    }


def woocommerce_order_payload(
    order_id: Any = 727,
    *,
    email: str = "arya@example.com",
    status: str = "processing",
    total: str = "30.00",
    date_modified_gmt: str = "2026-10-02T08:30:00",
    line_items: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    if line_items is None:
        line_items = [
            {"name": "Needle", "sku": "", "quantity": 1, "price": 30},
        ]
    return {
        "id": order_id,
        "status": status,
        "currency": "EUR",
        "total": total,
        "date_created_gmt": "2026-10-02T08:00:00",
        "date_modified_gmt": date_modified_gmt,
        "billing": {
            "first_name": "Arya",
            "last_name": "Stark",
            "email": email,
            "phone": "+44 20 7946 0000",
            "address_1": "House of Black and White",
            "city": "Braavos",
            "country": "GB",
        },
        "shipping": {
            "first_name": "Arya",
            "last_name": "Stark",
            "address_1": "House of Black and White",
            "city": "Braavos",
            "country": "GB",
        },
        "line_items": line_items,
    }


class RecordingChannel:
    """Notification channel that records what it was asked to send."""

    def __init__(self, result: ChannelResult | None = None):
        self.sent: list[tuple[str, OrderNotificationSummary]] = []
        self.result = result or ChannelResult(success=True)

    async def send(self, destination: str, summary: OrderNotificationSummary) -> ChannelResult:
        self.sent.append((destination, summary))
        return self.result
