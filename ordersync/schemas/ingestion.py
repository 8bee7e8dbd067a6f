"""Provider-agnostic shapes produced by the payload normalizers."""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class NormalizedCustomer(BaseModel):
    name: str = ""
    email: str
    phone: str | None = None
    address: dict[str, Any] = Field(default_factory=dict)


class NormalizedLineItem(BaseModel):
    product_sku: str = ""
    product_name: str
    quantity: int = Field(..., ge=0)
    price_per_unit: Decimal


class NormalizedOrderFields(BaseModel):
    status: str
    total_amount: Decimal
    currency: str = "USD"
    order_created_at: datetime
    provider_updated_at: datetime | None = None


class NormalizedOrder(BaseModel):
    external_order_id: str = Field(..., min_length=1, max_length=255)
    customer: NormalizedCustomer
    order: NormalizedOrderFields
    items: list[NormalizedLineItem] = Field(default_factory=list)


class IngestionResult(BaseModel):
    """Response payload for a successfully reconciled order."""

    model_config = ConfigDict(populate_by_name=True)

    order_id: UUID = Field(serialization_alias="orderId")
    customer_id: UUID = Field(serialization_alias="customerId")
    external_order_id: str = Field(serialization_alias="externalOrderId")
    status: str
    total_amount: float = Field(serialization_alias="totalAmount")
    items_count: int = Field(serialization_alias="itemsCount")
    is_new_order: bool = Field(serialization_alias="isNewOrder")


class OrderNotificationItem(BaseModel):
    name: str
    quantity: int
    price: str


class OrderNotificationSummary(BaseModel):
    """What the notification channel receives for a reconciled order."""

    order_id: UUID
    order_number: str
    customer_name: str
    customer_email: str
    total: str
    currency: str
    status: str
    integration: str
    is_new: bool
    items: list[OrderNotificationItem] = Field(default_factory=list)
