"""Webhook request log API endpoints."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ordersync.core.database import get_db
from ordersync.repositories.webhook_log_repository import WebhookLogRepository
from ordersync.schemas.webhook_log import WebhookLogResponse

router = APIRouter()


@router.get(
    "/",
    response_model=list[WebhookLogResponse],
    summary="List webhook request logs",
)
async def list_webhook_logs(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    request_id: str | None = None,
    provider: str | None = None,
    event: str | None = None,
    db: Session = Depends(get_db),
) -> list[WebhookLogResponse]:
    """List recorded webhook events, newest first."""
    repo = WebhookLogRepository(db)
    return [
        WebhookLogResponse.model_validate(log)
        for log in repo.get_all(
            skip=skip,
            limit=limit,
            request_id=request_id,
            provider=provider,
            event=event,
        )
    ]


@router.get(
    "/{request_id}",
    response_model=list[WebhookLogResponse],
    summary="Get the trail of one webhook request",
)
async def get_webhook_request_trail(
    request_id: str,
    db: Session = Depends(get_db),
) -> list[WebhookLogResponse]:
    """All events recorded for one request, in the order they happened."""
    repo = WebhookLogRepository(db)
    return [WebhookLogResponse.model_validate(log) for log in repo.get_by_request_id(request_id)]
