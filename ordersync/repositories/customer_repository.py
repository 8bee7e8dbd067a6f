from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from ordersync.models.customer import Customer


class CustomerRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, customer_id: UUID, user_id: UUID | None = None) -> Customer | None:
        query = self.db.query(Customer).filter(Customer.id == customer_id)
        if user_id is not None:
            query = query.filter(Customer.user_id == user_id)
        return query.first()

    def get_by_email(self, email: str, user_id: UUID) -> Customer | None:
        return (
            self.db.query(Customer)
            .filter(
                Customer.email == email,
                Customer.user_id == user_id,
            )
            .first()
        )

    def create(
        self,
        *,
        user_id: UUID,
        name: str,
        email: str,
        phone: str | None,
        address: dict[str, Any],
        source: str,
        total_order: int = 1,
    ) -> Customer:
        """Insert a customer.

        Raises ``sqlalchemy.exc.IntegrityError`` when a customer with the same
        ``(email, user_id)`` already exists; the caller owns the rollback.
        """
        customer = Customer(
            user_id=user_id,
            name=name,
            email=email,
            phone=phone,
            address=address,
            source=source,
            total_order=total_order,
        )
        self.db.add(customer)
        self.db.commit()
        self.db.refresh(customer)
        return customer

    def update_contact(
        self,
        customer: Customer,
        *,
        name: str,
        phone: str | None,
        address: dict[str, Any],
        increment_orders: bool = False,
    ) -> Customer:
        """Refresh contact and address fields, optionally counting one more order."""
        customer.name = name  # type: ignore[assignment]
        customer.phone = phone  # type: ignore[assignment]
        customer.address = address  # type: ignore[assignment]
        if increment_orders:
            # Increment in SQL so concurrent deliveries for different orders don't lose counts.
            customer.total_order = Customer.total_order + 1  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(customer)
        return customer
