from ordersync.schemas.ingestion import (
    IngestionResult,
    NormalizedCustomer,
    NormalizedLineItem,
    NormalizedOrder,
    NormalizedOrderFields,
    OrderNotificationItem,
    OrderNotificationSummary,
)
from ordersync.schemas.integration import IntegrationCreate
from ordersync.schemas.webhook_log import WebhookLogResponse

__all__ = [
    "IngestionResult",
    "IntegrationCreate",
    "NormalizedCustomer",
    "NormalizedLineItem",
    "NormalizedOrder",
    "NormalizedOrderFields",
    "OrderNotificationItem",
    "OrderNotificationSummary",
    "WebhookLogResponse",
]
