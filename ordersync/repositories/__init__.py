from ordersync.repositories.customer_repository import CustomerRepository
from ordersync.repositories.integration_repository import IntegrationRepository
from ordersync.repositories.notification_setting_repository import NotificationSettingRepository
from ordersync.repositories.order_item_repository import OrderItemRepository
from ordersync.repositories.order_repository import OrderRepository
from ordersync.repositories.webhook_log_repository import WebhookLogRepository

__all__ = [
    "CustomerRepository",
    "IntegrationRepository",
    "NotificationSettingRepository",
    "OrderItemRepository",
    "OrderRepository",
    "WebhookLogRepository",
]
