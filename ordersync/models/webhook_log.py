"""WebhookLog model for the inbound webhook audit trail."""

from sqlalchemy import JSON, Column, DateTime, Float, Integer, String, Text

from ordersync.core.database import Base
from ordersync.models.shared import UUIDType, generate_uuid, utc_now


class WebhookLog(Base):
    """One audit event for an inbound webhook request.

    Events sharing a ``request_id`` describe a single request from receipt
    to response.
    """

    __tablename__ = "webhook_logs"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    request_id = Column(String(64), nullable=False, index=True)
    event = Column(String(20), nullable=False, index=True)
    provider = Column(String(30), nullable=True, index=True)
    step = Column(String(100), nullable=True)
    status_code = Column(Integer, nullable=True)
    message = Column(Text, nullable=True)
    data = Column(JSON, nullable=False, default=dict)
    processing_time_ms = Column(Float, nullable=True)
    # Set client side so events of one request sort in the order they were recorded.
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
