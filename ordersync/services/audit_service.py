"""Audit sinks for recording the lifecycle of inbound webhook requests.

An ``AuditSink`` receives four kinds of events, all keyed by a per-request
correlation id: request received, processing step, error and response.
Secrets never reach a sink in full; use ``mask_secret`` before handing one
over.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Protocol
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ordersync.core.config import settings
from ordersync.repositories.webhook_log_repository import WebhookLogRepository

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("ordersync.audit")

EVENT_REQUEST = "request"
EVENT_PROCESSING = "processing"
EVENT_ERROR = "error"
EVENT_RESPONSE = "response"

# Headers whose values are replaced with a masked prefix before recording.
SENSITIVE_HEADERS = {
    "x-webhook-secret": 8,
    "x-wc-webhook-signature": 16,
    "x-shopify-hmac-sha256": 16,
    "authorization": 8,
}

# Query parameters that may carry a shared secret.
SENSITIVE_QUERY_PARAMS = {"secret", "webhook_secret"}


def new_request_id() -> str:
    """Generate a correlation id for one inbound request."""
    return f"req_{uuid.uuid4().hex[:16]}"


def mask_secret(value: str | None, prefix_length: int = 8) -> str | None:
    """Keep a short prefix of a secret and its length, drop the rest."""
    if value is None:
        return None
    return f"{value[:prefix_length]}... (length: {len(value)})"


def sanitize_headers(headers: dict[str, str]) -> dict[str, str]:
    """Mask sensitive header values, keeping them identifiable."""
    sanitized: dict[str, str] = {}
    for key, value in headers.items():
        prefix_length = SENSITIVE_HEADERS.get(key.lower())
        if prefix_length is not None:
            sanitized[key] = mask_secret(value, prefix_length) or ""
        else:
            sanitized[key] = value
    return sanitized


def sanitize_url(url: str) -> str:
    """Mask secret query parameter values in ``url``."""
    parts = urlsplit(url)
    if not parts.query:
        return url
    query = [
        (key, (mask_secret(value) or "") if key.lower() in SENSITIVE_QUERY_PARAMS else value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
    ]
    return urlunsplit(parts._replace(query=urlencode(query, safe=".():")))


class AuditSink(Protocol):
    """Records structured events for inbound webhook requests."""

    def request_received(
        self,
        request_id: str,
        *,
        provider: str,
        method: str,
        url: str,
        headers: dict[str, str],
        body_size: int,
    ) -> None: ...

    def processing_step(
        self, request_id: str, step: str, *, provider: str, data: dict[str, Any] | None = None
    ) -> None: ...

    def error(
        self,
        request_id: str,
        *,
        provider: str,
        status_code: int,
        message: str,
        data: dict[str, Any] | None = None,
        processing_time_ms: float | None = None,
    ) -> None: ...

    def response(
        self,
        request_id: str,
        *,
        provider: str,
        status_code: int,
        message: str,
        data: dict[str, Any] | None = None,
        processing_time_ms: float | None = None,
    ) -> None: ...


class LoggingAuditSink:
    """Writes audit events to the ``ordersync.audit`` logger."""

    def request_received(
        self,
        request_id: str,
        *,
        provider: str,
        method: str,
        url: str,
        headers: dict[str, str],
        body_size: int,
    ) -> None:
        audit_logger.info(
            "[%s] %s webhook request %s %s (%d bytes) headers=%s",
            request_id,
            provider,
            method,
            sanitize_url(url),
            body_size,
            sanitize_headers(headers),
        )

    def processing_step(
        self, request_id: str, step: str, *, provider: str, data: dict[str, Any] | None = None
    ) -> None:
        audit_logger.info("[%s] %s processing %s %s", request_id, provider, step, data or {})

    def error(
        self,
        request_id: str,
        *,
        provider: str,
        status_code: int,
        message: str,
        data: dict[str, Any] | None = None,
        processing_time_ms: float | None = None,
    ) -> None:
        audit_logger.warning(
            "[%s] %s error %d: %s (%.1fms) %s",
            request_id,
            provider,
            status_code,
            message,
            processing_time_ms or 0.0,
            data or {},
        )

    def response(
        self,
        request_id: str,
        *,
        provider: str,
        status_code: int,
        message: str,
        data: dict[str, Any] | None = None,
        processing_time_ms: float | None = None,
    ) -> None:
        audit_logger.info(
            "[%s] %s response %d: %s (%.1fms)",
            request_id,
            provider,
            status_code,
            message,
            processing_time_ms or 0.0,
        )


class DatabaseAuditSink(LoggingAuditSink):
    """Persists audit events as ``WebhookLog`` rows and mirrors them to the log.

    A failing audit write is logged and dropped so it can never change the
    outcome of the request being audited.
    """

    def __init__(self, db: Session):
        self.repo = WebhookLogRepository(db)
        self.db = db

    def _write(self, **kwargs: Any) -> None:
        try:
            self.repo.create(**kwargs)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to persist webhook audit event for %s", kwargs["request_id"])

    def request_received(
        self,
        request_id: str,
        *,
        provider: str,
        method: str,
        url: str,
        headers: dict[str, str],
        body_size: int,
    ) -> None:
        super().request_received(
            request_id,
            provider=provider,
            method=method,
            url=url,
            headers=headers,
            body_size=body_size,
        )
        self._write(
            request_id=request_id,
            event=EVENT_REQUEST,
            provider=provider,
            message=f"{method} {sanitize_url(url)}",
            data={"headers": sanitize_headers(headers), "body_size": body_size},
        )

    def processing_step(
        self, request_id: str, step: str, *, provider: str, data: dict[str, Any] | None = None
    ) -> None:
        super().processing_step(request_id, step, provider=provider, data=data)
        self._write(
            request_id=request_id,
            event=EVENT_PROCESSING,
            provider=provider,
            step=step,
            data=data,
        )

    def error(
        self,
        request_id: str,
        *,
        provider: str,
        status_code: int,
        message: str,
        data: dict[str, Any] | None = None,
        processing_time_ms: float | None = None,
    ) -> None:
        super().error(
            request_id,
            provider=provider,
            status_code=status_code,
            message=message,
            data=data,
            processing_time_ms=processing_time_ms,
        )
        self._write(
            request_id=request_id,
            event=EVENT_ERROR,
            provider=provider,
            status_code=status_code,
            message=message,
            data=data,
            processing_time_ms=processing_time_ms,
        )

    def response(
        self,
        request_id: str,
        *,
        provider: str,
        status_code: int,
        message: str,
        data: dict[str, Any] | None = None,
        processing_time_ms: float | None = None,
    ) -> None:
        super().response(
            request_id,
            provider=provider,
            status_code=status_code,
            message=message,
            data=data,
            processing_time_ms=processing_time_ms,
        )
        self._write(
            request_id=request_id,
            event=EVENT_RESPONSE,
            provider=provider,
            status_code=status_code,
            message=message,
            data=data,
            processing_time_ms=processing_time_ms,
        )


@dataclass
class AuditEvent:
    request_id: str
    event: str
    provider: str
    step: str | None = None
    status_code: int | None = None
    message: str | None = None
    data: dict[str, Any] = field(default_factory=dict)


class InMemoryAuditSink:
    """Keeps audit events in a list; for tests and local debugging."""

    def __init__(self) -> None:
        self.events: list[AuditEvent] = []

    def request_received(
        self,
        request_id: str,
        *,
        provider: str,
        method: str,
        url: str,
        headers: dict[str, str],
        body_size: int,
    ) -> None:
        self.events.append(
            AuditEvent(
                request_id=request_id,
                event=EVENT_REQUEST,
                provider=provider,
                message=f"{method} {sanitize_url(url)}",
                data={"headers": sanitize_headers(headers), "body_size": body_size},
            )
        )

    def processing_step(
        self, request_id: str, step: str, *, provider: str, data: dict[str, Any] | None = None
    ) -> None:
        self.events.append(
            AuditEvent(
                request_id=request_id,
                event=EVENT_PROCESSING,
                provider=provider,
                step=step,
                data=data or {},
            )
        )

    def error(
        self,
        request_id: str,
        *,
        provider: str,
        status_code: int,
        message: str,
        data: dict[str, Any] | None = None,
        processing_time_ms: float | None = None,
    ) -> None:
        self.events.append(
            AuditEvent(
                request_id=request_id,
                event=EVENT_ERROR,
                provider=provider,
                status_code=status_code,
                message=message,
                data={**(data or {}), "processing_time_ms": processing_time_ms},
            )
        )

    def response(
        self,
        request_id: str,
        *,
        provider: str,
        status_code: int,
        message: str,
        data: dict[str, Any] | None = None,
        processing_time_ms: float | None = None,
    ) -> None:
        self.events.append(
            AuditEvent(
                request_id=request_id,
                event=EVENT_RESPONSE,
                provider=provider,
                status_code=status_code,
                message=message,
                data={**(data or {}), "processing_time_ms": processing_time_ms},
            )
        )

    def steps(self, request_id: str | None = None) -> list[str]:
        return [
            e.step
            for e in self.events
            if e.event == EVENT_PROCESSING
            and e.step is not None
            and (request_id is None or e.request_id == request_id)
        ]


def get_audit_sink(db: Session) -> AuditSink:
    """Build the configured audit sink for a request."""
    if settings.AUDIT_SINK == "logging":
        return LoggingAuditSink()
    return DatabaseAuditSink(db)
