"""Pydantic schemas for WebhookLog."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel


class WebhookLogResponse(BaseModel):
    id: UUID
    request_id: str
    event: str
    provider: str | None
    step: str | None
    status_code: int | None
    message: str | None
    data: dict[str, Any]
    processing_time_ms: float | None
    created_at: datetime

    model_config = {"from_attributes": True}
