from sqlalchemy import JSON, Column, DateTime, Integer, String, UniqueConstraint, func

from ordersync.core.database import Base
from ordersync.models.shared import UUIDType, generate_uuid


class Customer(Base):
    __tablename__ = "customers"
    __table_args__ = (
        UniqueConstraint("email", "user_id", name="uq_customers_email_user"),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    user_id = Column(UUIDType, nullable=False, index=True)
    name = Column(String(255), nullable=False, default="")
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(50), nullable=True)
    address = Column(JSON, nullable=False, default=dict)
    source = Column(String(30), nullable=False)
    total_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
