"""Order and OrderItem models."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import relationship

from ordersync.core.database import Base
from ordersync.models.shared import MoneyType, UUIDType, generate_uuid, utc_now


class Order(Base):
    """Order received from a storefront.

    ``(integration_id, external_order_id)`` is unique: every redelivery of the
    same storefront order updates this row in place.
    """

    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint(
            "integration_id", "external_order_id", name="uq_orders_integration_external_id"
        ),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    user_id = Column(UUIDType, nullable=False, index=True)
    integration_id = Column(
        UUIDType,
        ForeignKey("integrations.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    customer_id = Column(
        UUIDType,
        ForeignKey("customers.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    external_order_id = Column(String(255), nullable=False)
    status = Column(String(50), nullable=False)
    total_amount = Column(MoneyType, nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    order_created_at = Column(DateTime(timezone=True), nullable=False)
    provider_updated_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class OrderItem(Base):
    """A line item; owned exclusively by its order."""

    __tablename__ = "order_items"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    order_id = Column(
        UUIDType,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_sku = Column(String(255), nullable=False, default="")
    product_name = Column(String(500), nullable=False)
    quantity = Column(Integer, nullable=False)
    price_per_unit = Column(MoneyType, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    order = relationship("Order", back_populates="items")
