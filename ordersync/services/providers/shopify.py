"""Shopify order webhooks.

Shopify signs every delivery with ``X-Shopify-Hmac-Sha256`` (base64
HMAC-SHA256 of the raw body keyed with the app's shared secret) and names the
shop in ``X-Shopify-Shop-Domain``. The domain header is not trusted to pick
the tenant; it only orders the candidates tried.
"""

from typing import Any

from sqlalchemy.orm import Session

from ordersync.core.errors import ValidationError
from ordersync.models.integration import Integration, IntegrationProviderType
from ordersync.models.shared import utc_now
from ordersync.schemas.ingestion import (
    NormalizedCustomer,
    NormalizedLineItem,
    NormalizedOrder,
    NormalizedOrderFields,
)
from ordersync.services.audit_service import AuditSink
from ordersync.services.providers.base import InboundRequest, ProviderAdapter
from ordersync.services.providers.fields import (
    as_dict,
    as_text,
    canonical_order_id,
    first_present,
    full_name,
    parse_amount,
    parse_quantity,
    parse_timestamp,
    require_email,
    require_line_items,
)
from ordersync.services.secret_resolver import SignatureSecretResolver

SHOPIFY_SIGNATURE_HEADER = "X-Shopify-Hmac-Sha256"
SHOPIFY_DOMAIN_HEADER = "X-Shopify-Shop-Domain"

_ADDRESS_FIELDS = (
    "first_name",
    "last_name",
    "company",
    "address1",
    "address2",
    "phone",
    "city",
    "province",
    "country",
    "zip",
)


def _address(block: dict[str, Any]) -> dict[str, str]:
    return {key: as_text(block.get(key)) for key in _ADDRESS_FIELDS}


class ShopifyAdapter(ProviderAdapter):
    def __init__(self) -> None:
        self.resolver = SignatureSecretResolver(
            IntegrationProviderType.SHOPIFY.value,
            signature_header=SHOPIFY_SIGNATURE_HEADER,
            domain_header=SHOPIFY_DOMAIN_HEADER,
        )

    @property
    def provider_name(self) -> str:
        return IntegrationProviderType.SHOPIFY.value

    @property
    def display_name(self) -> str:
        return "Shopify"

    def authenticate(
        self, db: Session, request: InboundRequest, request_id: str, audit: AuditSink
    ) -> Integration:
        return self.resolver.resolve(db, request, request_id, audit).integration

    def normalize(self, payload: Any) -> NormalizedOrder:
        """Map a Shopify ``orders/create`` or ``orders/updated`` payload."""
        if not isinstance(payload, dict):
            raise ValidationError("Order payload must be a JSON object", code="invalid_payload")

        customer = as_dict(payload.get("customer"))
        billing = as_dict(payload.get("billing_address"))
        shipping = as_dict(payload.get("shipping_address"))

        name = full_name(customer.get("first_name"), customer.get("last_name")) or full_name(
            billing.get("first_name"), billing.get("last_name")
        )
        address: dict[str, Any] = {
            "billing": _address(billing),
            "shipping": _address(shipping),
        }
        default_address = customer.get("default_address")
        if isinstance(default_address, dict):
            address["customer_default"] = _address(default_address)

        items = [
            NormalizedLineItem(
                product_sku=as_text(item.get("sku")),
                product_name=as_text(item.get("title")) or as_text(item.get("name")),
                quantity=parse_quantity(item.get("quantity"), f"line_items[{i}].quantity"),
                price_per_unit=parse_amount(
                    item.get("price"), f"line_items[{i}].price", "invalid_price"
                ),
            )
            for i, item in enumerate(require_line_items(payload))
        ]

        return NormalizedOrder(
            external_order_id=canonical_order_id(payload.get("id")),
            customer=NormalizedCustomer(
                name=name,
                email=require_email(customer.get("email"), payload.get("email")),
                phone=first_present(
                    customer.get("phone"), billing.get("phone"), shipping.get("phone")
                ),
                address=address,
            ),
            order=NormalizedOrderFields(
                status=as_text(payload.get("financial_status")) or "pending",
                total_amount=parse_amount(
                    payload.get("total_price"), "total_price", "invalid_total"
                ),
                currency=as_text(payload.get("currency")).upper()[:3] or "USD",
                order_created_at=parse_timestamp(payload.get("created_at"), "created_at")
                or utc_now(),
                provider_updated_at=parse_timestamp(payload.get("updated_at"), "updated_at"),
            ),
            items=items,
        )
