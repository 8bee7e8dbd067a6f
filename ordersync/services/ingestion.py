"""Webhook ingestion pipeline shared by every storefront provider.

One request moves through::

    RECEIVED -> AUTHENTICATED -> NORMALIZED -> ORDER_RECONCILED
             -> CUSTOMER_RECONCILED -> ITEMS_REPLACED -> RESPONDED

Any failure short-circuits to a terminal state and an error response. The
provider only supplies authentication and payload normalization through its
``ProviderAdapter``; reconciliation is identical for all of them.
"""

import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ordersync.core.errors import (
    AuthenticationError,
    IngestionError,
    PersistenceError,
    TenantNotConfiguredError,
    ValidationError,
)
from ordersync.models.customer import Customer
from ordersync.models.integration import Integration
from ordersync.models.order import Order
from ordersync.repositories.customer_repository import CustomerRepository
from ordersync.repositories.order_item_repository import OrderItemRepository
from ordersync.schemas.ingestion import (
    IngestionResult,
    NormalizedLineItem,
    NormalizedOrder,
    OrderNotificationItem,
    OrderNotificationSummary,
)
from ordersync.services.audit_service import AuditSink, new_request_id
from ordersync.services.customer_reconciler import CustomerReconciler
from ordersync.services.line_item_replacer import LineItemReplacer
from ordersync.services.order_reconciler import OrderReconciler
from ordersync.services.providers.base import InboundRequest, ProviderAdapter

logger = logging.getLogger(__name__)


class IngestionState(str, Enum):
    RECEIVED = "received"
    AUTHENTICATED = "authenticated"
    NORMALIZED = "normalized"
    ORDER_RECONCILED = "order_reconciled"
    CUSTOMER_RECONCILED = "customer_reconciled"
    ITEMS_REPLACED = "items_replaced"
    RESPONDED = "responded"
    AUTH_FAILED = "auth_failed"
    VALIDATION_FAILED = "validation_failed"
    NOT_CONFIGURED = "not_configured"
    PERSISTENCE_FAILED = "persistence_failed"


def _failure_state(exc: IngestionError) -> IngestionState:
    if isinstance(exc, AuthenticationError):
        return IngestionState.AUTH_FAILED
    if isinstance(exc, ValidationError):
        return IngestionState.VALIDATION_FAILED
    if isinstance(exc, TenantNotConfiguredError):
        return IngestionState.NOT_CONFIGURED
    return IngestionState.PERSISTENCE_FAILED


@dataclass
class IngestionOutcome:
    request_id: str
    state: IngestionState
    status_code: int
    body: dict[str, Any]
    owner_user_id: UUID | None = None
    # Set only when the order was written; the caller dispatches it after responding.
    notification: OrderNotificationSummary | None = None

    @property
    def succeeded(self) -> bool:
        return self.state == IngestionState.RESPONDED


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


def _translate_schema_error(exc: PydanticValidationError) -> ValidationError:
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ()))
    return ValidationError(
        f"Invalid value for {field}: {first.get('msg', 'invalid')}",
        code="invalid_payload",
        field=field or None,
    )


class IngestionOrchestrator:
    """Runs one inbound webhook through authentication, normalization and reconciliation."""

    def __init__(self, db: Session, adapter: ProviderAdapter, audit: AuditSink):
        self.db = db
        self.adapter = adapter
        self.audit = audit
        self.orders = OrderReconciler(db)
        self.customers = CustomerReconciler(db)
        self.items = LineItemReplacer(db)

    def _step(self, request_id: str, state: IngestionState, **data: Any) -> None:
        self.audit.processing_step(
            request_id, state.value, provider=self.adapter.provider_name, data=data
        )

    def ingest(self, request: InboundRequest, request_id: str | None = None) -> IngestionOutcome:
        request_id = request_id or new_request_id()
        started = time.perf_counter()
        provider = self.adapter.provider_name

        self.audit.request_received(
            request_id,
            provider=provider,
            method=request.method,
            url=request.url,
            headers=request.headers,
            body_size=len(request.raw_body),
        )
        self._step(request_id, IngestionState.RECEIVED)

        try:
            return self._run(request, request_id, started)
        except IngestionError as exc:
            return self._fail(request_id, exc, started)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Database error while ingesting %s webhook %s", provider, request_id)
            error = PersistenceError(
                "Failed to save order", detail={"reason": str(exc)[:1000]}
            )
            return self._fail(request_id, error, started)
        except Exception as exc:
            self.db.rollback()
            logger.exception("Unexpected error while ingesting %s webhook %s", provider, request_id)
            reason = f"{type(exc).__name__}: {exc}"[:1000]
            error = PersistenceError("Failed to process order", detail={"reason": reason})
            return self._fail(request_id, error, started)

    def _run(self, request: InboundRequest, request_id: str, started: float) -> IngestionOutcome:
        self._parse_body(request)
        integration = self.adapter.authenticate(self.db, request, request_id, self.audit)
        self._step(request_id, IngestionState.AUTHENTICATED, integration_id=str(integration.id))

        normalized = self._normalize(request.json_body)
        self._step(
            request_id,
            IngestionState.NORMALIZED,
            external_order_id=normalized.external_order_id,
            items_count=len(normalized.items),
        )

        reconciliation = self.orders.reconcile(
            integration, normalized.external_order_id, normalized.order
        )
        order = reconciliation.order
        is_new_order = reconciliation.is_new_order
        self._step(
            request_id,
            IngestionState.ORDER_RECONCILED,
            order_id=str(order.id),
            is_new_order=is_new_order,
            is_stale=reconciliation.is_stale,
        )

        if reconciliation.is_stale:
            customer = self._stored_customer(order) or self.customers.reconcile(
                integration.user_id,  # type: ignore[arg-type]
                normalized.customer,
                is_new_order=False,
                source=self.adapter.provider_name,
            )
        else:
            customer = self.customers.reconcile(
                integration.user_id,  # type: ignore[arg-type]
                normalized.customer,
                is_new_order=is_new_order,
                source=self.adapter.provider_name,
            )
        if order.customer_id != customer.id:
            order = self.orders.link_customer(order, customer.id)  # type: ignore[arg-type]
        self._step(
            request_id,
            IngestionState.CUSTOMER_RECONCILED,
            customer_id=str(customer.id),
            total_order=customer.total_order,
        )

        if reconciliation.is_stale:
            item_repo = OrderItemRepository(self.db)
            items_count = len(item_repo.get_by_order_id(order.id))  # type: ignore[arg-type]
        else:
            items_count = len(self.items.replace(order, normalized.items))
        self._step(
            request_id,
            IngestionState.ITEMS_REPLACED,
            items_count=items_count,
            skipped=reconciliation.is_stale,
        )

        result = IngestionResult(
            order_id=order.id,  # type: ignore[arg-type]
            customer_id=customer.id,  # type: ignore[arg-type]
            external_order_id=str(order.external_order_id),
            status=str(order.status),
            total_amount=float(order.total_amount),
            items_count=items_count,
            is_new_order=is_new_order,
        )
        if is_new_order:
            message = "Order created successfully"
        elif reconciliation.is_stale:
            message = "Stale order update ignored"
        else:
            message = "Order updated successfully"
        body = {
            "success": True,
            "message": message,
            "data": result.model_dump(mode="json", by_alias=True),
        }

        self.audit.response(
            request_id,
            provider=self.adapter.provider_name,
            status_code=200,
            message=message,
            data=body["data"],
            processing_time_ms=_elapsed_ms(started),
        )
        self._step(request_id, IngestionState.RESPONDED)

        notification = None
        if not reconciliation.is_stale:
            notification = self._summary(
                integration, order, customer, normalized.items, is_new_order
            )
        return IngestionOutcome(
            request_id=request_id,
            state=IngestionState.RESPONDED,
            status_code=200,
            body=body,
            owner_user_id=integration.user_id,  # type: ignore[arg-type]
            notification=notification,
        )

    def _parse_body(self, request: InboundRequest) -> None:
        if request.json_body is not None:
            return
        content_type = request.header("content-type") or ""
        if content_type and "json" not in content_type.lower():
            raise ValidationError(
                f"Unsupported content type: {content_type}", code="invalid_content_type"
            )
        if not request.raw_body.strip():
            raise ValidationError("Request body is empty", code="empty_body")
        try:
            request.json_body = json.loads(request.raw_body)
        except ValueError as exc:
            raise ValidationError("Request body is not valid JSON", code="invalid_json") from exc

    def _normalize(self, payload: Any) -> NormalizedOrder:
        if payload is None:
            raise ValidationError("Request body is empty", code="empty_body")
        try:
            return self.adapter.normalize(payload)
        except PydanticValidationError as exc:
            raise _translate_schema_error(exc) from exc

    def _stored_customer(self, order: Order) -> Customer | None:
        if order.customer_id is None:
            return None
        return CustomerRepository(self.db).get_by_id(order.customer_id)  # type: ignore[arg-type]

    def _fail(self, request_id: str, exc: IngestionError, started: float) -> IngestionOutcome:
        state = _failure_state(exc)
        self.audit.error(
            request_id,
            provider=self.adapter.provider_name,
            status_code=exc.status_code,
            message=exc.message,
            data={"code": exc.code, "state": state.value, **exc.detail},
            processing_time_ms=_elapsed_ms(started),
        )
        self._step(request_id, state, code=exc.code)
        return IngestionOutcome(
            request_id=request_id,
            state=state,
            status_code=exc.status_code,
            body=exc.to_response_body(),
        )

    def _summary(
        self,
        integration: Integration,
        order: Order,
        customer: Customer,
        items: list[NormalizedLineItem],
        is_new_order: bool,
    ) -> OrderNotificationSummary:
        return OrderNotificationSummary(
            order_id=order.id,  # type: ignore[arg-type]
            order_number=str(order.external_order_id),
            customer_name=str(customer.name or ""),
            customer_email=str(customer.email),
            total=f"{order.total_amount:.2f}",
            currency=str(order.currency),
            status=str(order.status),
            integration=integration.domain or self.adapter.display_name,  # type: ignore[arg-type]
            is_new=is_new_order,
            items=[
                OrderNotificationItem(
                    name=item.product_name,
                    quantity=item.quantity,
                    price=f"{item.price_per_unit:.2f}",
                )
                for item in items
            ],
        )
