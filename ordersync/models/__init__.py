from ordersync.models.customer import Customer
from ordersync.models.integration import Integration, IntegrationProviderType
from ordersync.models.notification_setting import NotificationSetting
from ordersync.models.order import Order, OrderItem
from ordersync.models.webhook_log import WebhookLog

__all__ = [
    "Customer",
    "Integration",
    "IntegrationProviderType",
    "NotificationSetting",
    "Order",
    "OrderItem",
    "WebhookLog",
]
