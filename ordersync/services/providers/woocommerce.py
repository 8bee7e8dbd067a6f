"""WooCommerce order webhooks.

WooCommerce deliveries are authenticated either by a shared secret the
merchant configured alongside the delivery URL (header, query string or body)
or by ``X-WC-Webhook-Signature``, the base64 HMAC-SHA256 of the raw body.
"""

from typing import Any
from urllib.parse import parse_qs

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
from ordersync.services.secret_resolver import DirectSecretResolver

WOOCOMMERCE_SECRET_HEADER = "X-Webhook-Secret"
WOOCOMMERCE_SIGNATURE_HEADER = "X-WC-Webhook-Signature"

_ADDRESS_FIELDS = (
    "first_name",
    "last_name",
    "company",
    "address_1",
    "address_2",
    "city",
    "state",
    "postcode",
    "country",
    "phone",
)


def _address(block: dict[str, Any]) -> dict[str, str]:
    return {key: as_text(block.get(key)) for key in _ADDRESS_FIELDS}


def is_ping(raw_body: bytes) -> bool:
    """True for the ``webhook_id=<n>`` form post WooCommerce sends when a webhook is saved."""
    try:
        text = raw_body.decode("utf-8")
    except UnicodeDecodeError:
        return False
    if text.lstrip().startswith("{"):
        return False
    return "webhook_id" in parse_qs(text)


class WooCommerceAdapter(ProviderAdapter):
    def __init__(self) -> None:
        self.resolver = DirectSecretResolver(
            IntegrationProviderType.WOOCOMMERCE.value,
            secret_header=WOOCOMMERCE_SECRET_HEADER,
            signature_header=WOOCOMMERCE_SIGNATURE_HEADER,
        )

    @property
    def provider_name(self) -> str:
        return IntegrationProviderType.WOOCOMMERCE.value

    @property
    def display_name(self) -> str:
        return "WooCommerce"

    def authenticate(
        self, db: Session, request: InboundRequest, request_id: str, audit: AuditSink
    ) -> Integration:
        return self.resolver.resolve(db, request, request_id, audit).integration

    def normalize(self, payload: Any) -> NormalizedOrder:
        """Map a WooCommerce ``order.created`` or ``order.updated`` payload."""
        if not isinstance(payload, dict):
            raise ValidationError("Order payload must be a JSON object", code="invalid_payload")

        billing = as_dict(payload.get("billing"))
        shipping = as_dict(payload.get("shipping"))

        items = [
            NormalizedLineItem(
                product_sku=as_text(item.get("sku")),
                product_name=as_text(item.get("name")),
                quantity=parse_quantity(item.get("quantity"), f"line_items[{i}].quantity"),
                price_per_unit=parse_amount(
                    item.get("price"), f"line_items[{i}].price", "invalid_price"
                ),
            )
            for i, item in enumerate(require_line_items(payload))
        ]

        created_at = first_present(payload.get("date_created_gmt"), payload.get("date_created"))
        modified_at = first_present(payload.get("date_modified_gmt"), payload.get("date_modified"))

        return NormalizedOrder(
            external_order_id=canonical_order_id(payload.get("id")),
            customer=NormalizedCustomer(
                name=full_name(billing.get("first_name"), billing.get("last_name"))
                or full_name(shipping.get("first_name"), shipping.get("last_name")),
                email=require_email(billing.get("email"), payload.get("email")),
                phone=first_present(billing.get("phone"), shipping.get("phone")),
                address={"billing": _address(billing), "shipping": _address(shipping)},
            ),
            order=NormalizedOrderFields(
                status=as_text(payload.get("status")) or "pending",
                total_amount=parse_amount(payload.get("total"), "total", "invalid_total"),
                currency=as_text(payload.get("currency")).upper()[:3] or "USD",
                order_created_at=parse_timestamp(created_at, "date_created") or utc_now(),
                provider_updated_at=parse_timestamp(modified_at, "date_modified"),
            ),
            items=items,
        )
