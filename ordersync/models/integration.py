"""Integration model: one registered storefront connection (tenant)."""

from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, Index, String, func

from ordersync.core.database import Base
from ordersync.models.shared import UUIDType, generate_uuid


class IntegrationProviderType(str, Enum):
    """Supported storefront providers."""

    SHOPIFY = "shopify"
    WOOCOMMERCE = "woocommerce"


class Integration(Base):
    """Integration model: a storefront that pushes order webhooks to us.

    ``webhook_secret`` is the HMAC key for Shopify and either the literal
    shared secret or the HMAC key for WooCommerce.
    """

    __tablename__ = "integrations"
    __table_args__ = (
        Index("ix_integrations_provider_active", "provider_type", "is_active"),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    user_id = Column(UUIDType, nullable=False, index=True)
    provider_type = Column(String(30), nullable=False)
    domain = Column(String(255), nullable=False)
    base_url = Column(String(2048), nullable=True)
    webhook_secret = Column(String(255), nullable=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
