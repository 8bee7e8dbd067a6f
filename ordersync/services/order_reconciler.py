"""Find-or-create-or-update for storefront orders.

``(integration_id, external_order_id)`` is the idempotency key of the whole
pipeline. ``reconcile`` decides, once per request, whether the delivery is a
new order; that decision is what the customer counter and the item replace
consume.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ordersync.core.config import settings
from ordersync.models.integration import Integration
from ordersync.models.order import Order
from ordersync.repositories.order_repository import OrderRepository
from ordersync.schemas.ingestion import NormalizedOrderFields

logger = logging.getLogger(__name__)


@dataclass
class OrderReconciliation:
    order: Order
    is_new_order: bool
    # An update older than what is stored; fields were left untouched.
    is_stale: bool = False


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def is_stale_update(order: Order, fields: NormalizedOrderFields) -> bool:
    """True if ``fields`` describe an older revision than the stored order."""
    stored = order.provider_updated_at
    incoming = fields.provider_updated_at
    if stored is None or incoming is None:
        return False
    return _as_utc(incoming) < _as_utc(stored)  # type: ignore[arg-type]


class OrderReconciler:
    """Service for upserting orders keyed by their storefront id."""

    def __init__(self, db: Session, stale_update_guard: bool | None = None):
        self.db = db
        self.repo = OrderRepository(db)
        self.stale_update_guard = (
            settings.ORDER_STALE_UPDATE_GUARD if stale_update_guard is None else stale_update_guard
        )

    def reconcile(
        self,
        integration: Integration,
        external_order_id: str,
        fields: NormalizedOrderFields,
        customer_id: UUID | None = None,
    ) -> OrderReconciliation:
        """Insert the order, or update it in place if the storefront sent it before.

        A concurrent delivery that wins the insert race turns this call into
        an update; the unique constraint guarantees a single row per key.
        """
        existing = self.repo.get_by_external_id(
            integration.id,  # type: ignore[arg-type]
            external_order_id,
        )
        if existing is not None:
            return self._update(existing, fields, customer_id)

        try:
            order = self.repo.create(
                user_id=integration.user_id,  # type: ignore[arg-type]
                integration_id=integration.id,  # type: ignore[arg-type]
                external_order_id=external_order_id,
                status=fields.status,
                total_amount=fields.total_amount,
                currency=fields.currency,
                order_created_at=fields.order_created_at,
                provider_updated_at=fields.provider_updated_at,
                customer_id=customer_id,
            )
        except IntegrityError:
            self.db.rollback()
            existing = self.repo.get_by_external_id(
                integration.id,  # type: ignore[arg-type]
                external_order_id,
            )
            if existing is None:
                raise
            logger.info(
                "Order %s for integration %s was inserted concurrently; updating instead",
                external_order_id,
                integration.id,
            )
            return self._update(existing, fields, customer_id)

        logger.info("Created order %s (external %s)", order.id, external_order_id)
        return OrderReconciliation(order=order, is_new_order=True)

    def _update(
        self,
        order: Order,
        fields: NormalizedOrderFields,
        customer_id: UUID | None,
    ) -> OrderReconciliation:
        if self.stale_update_guard and is_stale_update(order, fields):
            logger.warning(
                "Ignoring stale update for order %s: incoming %s older than stored %s",
                order.id,
                fields.provider_updated_at,
                order.provider_updated_at,
            )
            return OrderReconciliation(order=order, is_new_order=False, is_stale=True)

        order = self.repo.update_fields(
            order,
            status=fields.status,
            total_amount=fields.total_amount,
            currency=fields.currency,
            order_created_at=fields.order_created_at,
            provider_updated_at=fields.provider_updated_at,
            customer_id=customer_id,
        )
        return OrderReconciliation(order=order, is_new_order=False)

    def link_customer(self, order: Order, customer_id: UUID) -> Order:
        """Point the order at its (possibly just created) customer."""
        return self.repo.set_customer(order, customer_id)
