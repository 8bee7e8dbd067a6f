"""Repository for WebhookLog records."""

from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from ordersync.models.webhook_log import WebhookLog


class WebhookLogRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        *,
        request_id: str,
        event: str,
        provider: str | None = None,
        step: str | None = None,
        status_code: int | None = None,
        message: str | None = None,
        data: dict[str, Any] | None = None,
        processing_time_ms: float | None = None,
    ) -> WebhookLog:
        log = WebhookLog(
            request_id=request_id,
            event=event,
            provider=provider,
            step=step,
            status_code=status_code,
            message=message,
            data=data or {},
            processing_time_ms=processing_time_ms,
        )
        self.db.add(log)
        self.db.commit()
        self.db.refresh(log)
        return log

    def get_by_request_id(self, request_id: str) -> list[WebhookLog]:
        return (
            self.db.query(WebhookLog)
            .filter(WebhookLog.request_id == request_id)
            .order_by(WebhookLog.created_at.asc())
            .all()
        )

    def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        request_id: str | None = None,
        provider: str | None = None,
        event: str | None = None,
    ) -> list[WebhookLog]:
        query = self.db.query(WebhookLog)
        if request_id is not None:
            query = query.filter(WebhookLog.request_id == request_id)
        if provider is not None:
            query = query.filter(WebhookLog.provider == provider)
        if event is not None:
            query = query.filter(WebhookLog.event == event)
        return query.order_by(WebhookLog.created_at.desc()).offset(skip).limit(limit).all()
