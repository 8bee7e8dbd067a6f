"""Integration repository for data access."""

import secrets

from sqlalchemy.orm import Session

from ordersync.models.integration import Integration
from ordersync.schemas.integration import IntegrationCreate

WEBHOOK_SECRET_PREFIX = "wh_"


def generate_webhook_secret() -> str:
    """Generate a webhook secret: ``wh_`` followed by 40 hex characters."""
    return WEBHOOK_SECRET_PREFIX + secrets.token_hex(20)


class IntegrationRepository:
    """Repository for Integration model."""

    def __init__(self, db: Session):
        self.db = db

    def get_active_by_provider(self, provider_type: str) -> list[Integration]:
        """Get all active integrations of a provider, oldest first."""
        return (
            self.db.query(Integration)
            .filter(
                Integration.provider_type == provider_type,
                Integration.is_active.is_(True),
            )
            .order_by(Integration.created_at.asc())
            .all()
        )

    def get_active_by_secret(self, provider_type: str, webhook_secret: str) -> Integration | None:
        """Get the active integration of a provider whose secret equals ``webhook_secret``."""
        return (
            self.db.query(Integration)
            .filter(
                Integration.provider_type == provider_type,
                Integration.webhook_secret == webhook_secret,
                Integration.is_active.is_(True),
            )
            .first()
        )

    def exists_for_provider(self, provider_type: str) -> bool:
        """Check whether any integration (active or not) is registered for a provider."""
        query = self.db.query(Integration.id).filter(Integration.provider_type == provider_type)
        return query.first() is not None

    def secret_exists(self, webhook_secret: str) -> bool:
        query = self.db.query(Integration.id).filter(
            Integration.webhook_secret == webhook_secret
        )
        return query.first() is not None

    def generate_unique_secret(self, max_attempts: int = 5) -> str:
        """Generate a webhook secret not used by any integration."""
        for _ in range(max_attempts):
            candidate = generate_webhook_secret()
            if not self.secret_exists(candidate):
                return candidate
        raise RuntimeError("Failed to generate a unique webhook secret")

    def create(self, data: IntegrationCreate) -> Integration:
        """Create a new integration, generating a secret when none is given."""
        integration = Integration(
            user_id=data.user_id,
            provider_type=data.provider_type.value,
            domain=data.domain,
            base_url=data.base_url,
            webhook_secret=data.webhook_secret or self.generate_unique_secret(),
            is_active=data.is_active,
        )
        self.db.add(integration)
        self.db.commit()
        self.db.refresh(integration)
        return integration
