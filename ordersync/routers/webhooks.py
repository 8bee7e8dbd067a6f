"""Inbound storefront order webhooks."""

import logging
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ordersync.core.database import get_db
from ordersync.models.integration import IntegrationProviderType
from ordersync.services.audit_service import get_audit_sink, new_request_id
from ordersync.services.ingestion import IngestionOrchestrator
from ordersync.services.notification_dispatcher import NotificationDispatcher
from ordersync.services.providers import InboundRequest, get_provider_adapter
from ordersync.services.providers.woocommerce import is_ping

logger = logging.getLogger(__name__)

router = APIRouter()

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}
REJECTED_METHODS = ["GET", "PUT", "DELETE", "PATCH"]


def get_notification_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher()


def _respond(
    status_code: int,
    body: dict[str, Any],
    request_id: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    all_headers = {**NO_CACHE_HEADERS, **(headers or {})}
    if request_id:
        all_headers["X-Request-Id"] = request_id
    return JSONResponse(status_code=status_code, content=body, headers=all_headers)


def _method_not_allowed(method: str) -> JSONResponse:
    return _respond(
        405,
        {"error": "method_not_allowed", "message": f"Method {method} not allowed. Use POST."},
        headers={"Allow": "POST"},
    )


async def _ingest(
    provider: IntegrationProviderType,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session,
    dispatcher: NotificationDispatcher,
) -> JSONResponse:
    inbound = InboundRequest.build(
        method=request.method,
        url=str(request.url),
        raw_body=await request.body(),
        headers=request.headers,
        query_params=request.query_params,
    )
    orchestrator = IngestionOrchestrator(db, get_provider_adapter(provider), get_audit_sink(db))
    outcome = orchestrator.ingest(inbound)

    if outcome.notification is not None and outcome.owner_user_id is not None:
        background_tasks.add_task(dispatcher.notify, outcome.owner_user_id, outcome.notification)

    return _respond(outcome.status_code, outcome.body, outcome.request_id)


@router.post("/shopify/orders", summary="Receive a Shopify order webhook")
async def shopify_order_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> JSONResponse:
    """Create or update an order from a Shopify ``orders/*`` webhook.

    Authenticated with ``X-Shopify-Hmac-Sha256``; the shop is resolved from
    whichever integration's secret produced the signature.
    """
    return await _ingest(IntegrationProviderType.SHOPIFY, request, background_tasks, db, dispatcher)


@router.api_route("/shopify/orders", methods=REJECTED_METHODS, include_in_schema=False)
async def shopify_order_webhook_other_methods(request: Request) -> JSONResponse:
    return _method_not_allowed(request.method)


@router.api_route(
    "/woocommerce/orders/validate",
    methods=["GET", "POST"],
    summary="Acknowledge WooCommerce webhook validation",
)
async def woocommerce_validate() -> JSONResponse:
    """Always succeeds so WooCommerce accepts the delivery URL."""
    return _respond(200, {"success": True, "message": "Webhook endpoint is reachable"})


@router.post("/woocommerce/orders", summary="Receive a WooCommerce order webhook")
async def woocommerce_order_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> JSONResponse:
    """Create or update an order from a WooCommerce ``order.*`` webhook.

    The ``webhook_id=<n>`` ping WooCommerce sends when a webhook is saved is
    acknowledged without processing.
    """
    if is_ping(await request.body()):
        request_id = new_request_id()
        logger.info("[%s] WooCommerce webhook ping acknowledged", request_id)
        return _respond(200, {"success": True, "message": "Webhook ping received"}, request_id)

    return await _ingest(
        IntegrationProviderType.WOOCOMMERCE, request, background_tasks, db, dispatcher
    )


@router.api_route("/woocommerce/orders", methods=REJECTED_METHODS, include_in_schema=False)
async def woocommerce_order_webhook_other_methods(request: Request) -> JSONResponse:
    return _method_not_allowed(request.method)
