from uuid import UUID

from sqlalchemy.orm import Session

from ordersync.models.order import OrderItem
from ordersync.schemas.ingestion import NormalizedLineItem


class OrderItemRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_order_id(self, order_id: UUID) -> list[OrderItem]:
        return (
            self.db.query(OrderItem)
            .filter(OrderItem.order_id == order_id)
            .order_by(OrderItem.created_at.asc())
            .all()
        )

    def replace_for_order(self, order_id: UUID, items: list[NormalizedLineItem]) -> list[OrderItem]:
        """Delete every item of an order and insert ``items`` in the same commit."""
        self.db.query(OrderItem).filter(OrderItem.order_id == order_id).delete(
            synchronize_session=False
        )
        rows = [
            OrderItem(
                order_id=order_id,
                product_sku=item.product_sku,
                product_name=item.product_name,
                quantity=item.quantity,
                price_per_unit=item.price_per_unit,
            )
            for item in items
        ]
        self.db.add_all(rows)
        self.db.commit()
        return rows
