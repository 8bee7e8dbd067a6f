from uuid import UUID

from pydantic import BaseModel, Field

from ordersync.models.integration import IntegrationProviderType


class IntegrationCreate(BaseModel):
    user_id: UUID
    provider_type: IntegrationProviderType
    domain: str = Field(..., min_length=1, max_length=255)
    base_url: str | None = Field(default=None, max_length=2048)
    webhook_secret: str | None = Field(default=None, max_length=255)
    is_active: bool = True
