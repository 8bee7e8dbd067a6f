from sqlalchemy.orm import Session

from ordersync.models.order import Order, OrderItem
from ordersync.repositories.order_item_repository import OrderItemRepository
from ordersync.schemas.ingestion import NormalizedLineItem


class LineItemReplacer:
    """Replace an order's items wholesale with those of the latest payload."""

    def __init__(self, db: Session):
        self.repo = OrderItemRepository(db)

    def replace(self, order: Order, items: list[NormalizedLineItem]) -> list[OrderItem]:
        # A concurrent delivery of the same new order may already have written items.
        return self.repo.replace_for_order(order.id, items)  # type: ignore[arg-type]
