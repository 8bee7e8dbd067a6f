"""Order repository for data access."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from ordersync.models.order import Order


class OrderRepository:
    """Repository for Order model."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_external_id(self, integration_id: UUID, external_order_id: str) -> Order | None:
        """Get the order a storefront knows as ``external_order_id``."""
        return (
            self.db.query(Order)
            .filter(
                Order.integration_id == integration_id,
                Order.external_order_id == external_order_id,
            )
            .first()
        )

    def count_by_external_id(self, integration_id: UUID, external_order_id: str) -> int:
        return (
            self.db.query(Order)
            .filter(
                Order.integration_id == integration_id,
                Order.external_order_id == external_order_id,
            )
            .count()
        )

    def create(
        self,
        *,
        user_id: UUID,
        integration_id: UUID,
        external_order_id: str,
        status: str,
        total_amount: Decimal,
        currency: str,
        order_created_at: datetime,
        provider_updated_at: datetime | None = None,
        customer_id: UUID | None = None,
    ) -> Order:
        """Insert an order.

        Raises ``sqlalchemy.exc.IntegrityError`` if the storefront order is
        already stored for this integration; the caller owns the rollback.
        """
        order = Order(
            user_id=user_id,
            integration_id=integration_id,
            customer_id=customer_id,
            external_order_id=external_order_id,
            status=status,
            total_amount=total_amount,
            currency=currency,
            order_created_at=order_created_at,
            provider_updated_at=provider_updated_at,
        )
        self.db.add(order)
        self.db.commit()
        self.db.refresh(order)
        return order

    def update_fields(
        self,
        order: Order,
        *,
        status: str,
        total_amount: Decimal,
        currency: str,
        order_created_at: datetime,
        provider_updated_at: datetime | None = None,
        customer_id: UUID | None = None,
    ) -> Order:
        order.status = status  # type: ignore[assignment]
        order.total_amount = total_amount  # type: ignore[assignment]
        order.currency = currency  # type: ignore[assignment]
        order.order_created_at = order_created_at  # type: ignore[assignment]
        if provider_updated_at is not None:
            order.provider_updated_at = provider_updated_at  # type: ignore[assignment]
        if customer_id is not None:
            order.customer_id = customer_id  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(order)
        return order

    def set_customer(self, order: Order, customer_id: UUID) -> Order:
        if order.customer_id == customer_id:
            return order
        order.customer_id = customer_id  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(order)
        return order
