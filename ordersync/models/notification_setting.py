"""Per-user destination for order notifications."""

from sqlalchemy import Boolean, Column, DateTime, String, func

from ordersync.core.database import Base
from ordersync.models.shared import UUIDType, generate_uuid


class NotificationSetting(Base):
    __tablename__ = "notification_settings"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    user_id = Column(UUIDType, nullable=False, unique=True, index=True)
    telegram_chat_id = Column(String(64), nullable=True)
    enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
