"""Find-or-create for the shopper behind an order."""

import logging
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ordersync.models.customer import Customer
from ordersync.repositories.customer_repository import CustomerRepository
from ordersync.schemas.ingestion import NormalizedCustomer

logger = logging.getLogger(__name__)


class CustomerReconciler:
    """Service for upserting customers keyed by ``(email, user_id)``.

    Emails are matched exactly as the storefront sent them.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = CustomerRepository(db)

    def reconcile(
        self,
        user_id: UUID,
        fields: NormalizedCustomer,
        is_new_order: bool,
        source: str,
    ) -> Customer:
        """Create the customer or refresh it.

        Contact and address fields are always refreshed; the order counter
        moves only when ``is_new_order`` is true, which the order reconciler
        decided for this same request.
        """
        existing = self.repo.get_by_email(fields.email, user_id)
        if existing is not None:
            return self._refresh(existing, fields, is_new_order)

        try:
            customer = self.repo.create(
                user_id=user_id,
                name=fields.name,
                email=fields.email,
                phone=fields.phone,
                address=fields.address,
                source=source,
                total_order=1,
            )
        except IntegrityError:
            self.db.rollback()
            existing = self.repo.get_by_email(fields.email, user_id)
            if existing is None:
                raise
            logger.info("Customer %s was created concurrently; updating instead", existing.id)
            return self._refresh(existing, fields, is_new_order)

        logger.info("Created customer %s from %s", customer.id, source)
        return customer

    def _refresh(
        self, customer: Customer, fields: NormalizedCustomer, is_new_order: bool
    ) -> Customer:
        return self.repo.update_contact(
            customer,
            name=fields.name,
            phone=fields.phone,
            address=fields.address,
            increment_orders=is_new_order,
        )
