"""Resolve an inbound webhook to the integration that sent it.

Storefronts do not reliably say which tenant they are, so a request is
authenticated against the set of registered secrets instead:

* signature mode: the HMAC-SHA256 signature over the raw body is checked
  against every active candidate of the provider (Shopify);
* direct mode: an explicitly presented shared secret is looked up exactly,
  falling back to signature matching when only a signature is present
  (WooCommerce).

All signature comparisons use ``hmac.compare_digest``.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, NoReturn

from sqlalchemy.orm import Session

from ordersync.core.errors import AuthenticationError, TenantNotConfiguredError
from ordersync.models.integration import Integration
from ordersync.repositories.integration_repository import IntegrationRepository
from ordersync.services.audit_service import AuditSink, mask_secret

if TYPE_CHECKING:
    from ordersync.services.providers.base import InboundRequest

logger = logging.getLogger(__name__)

NO_MATCH_MESSAGE = "No matching integration found for this request"


def compute_signature(raw_body: bytes, secret: str) -> str:
    """Return the base64-encoded HMAC-SHA256 of ``raw_body`` keyed with ``secret``."""
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def signatures_match(expected: str, provided: str) -> bool:
    """Constant-time signature comparison."""
    return hmac.compare_digest(expected.encode("utf-8"), provided.encode("utf-8"))


class CredentialStore:
    """Keyed credentials of one provider's active integrations.

    ``find_matching_candidate`` is the only way callers test a signature, so
    the iteration strategy can change without touching them. Candidates whose
    domain equals the optional discriminator are tried first.
    """

    def __init__(self, db: Session, provider_type: str):
        self.repo = IntegrationRepository(db)
        self.provider_type = provider_type

    def candidates(self, discriminator: str | None = None) -> list[Integration]:
        active = [
            i for i in self.repo.get_active_by_provider(self.provider_type) if i.webhook_secret
        ]
        if discriminator:
            wanted = discriminator.strip().lower()
            active.sort(key=lambda i: str(i.domain or "").strip().lower() != wanted)
        return active

    def find_matching_candidate(
        self,
        raw_body: bytes,
        provided_signature: str,
        discriminator: str | None = None,
    ) -> tuple[Integration | None, int]:
        """Return the first integration whose secret signs ``raw_body`` as given.

        Also returns the number of candidates tried, for auditing.
        """
        tried = 0
        for candidate in self.candidates(discriminator):
            tried += 1
            expected = compute_signature(raw_body, str(candidate.webhook_secret))
            if signatures_match(expected, provided_signature):
                return candidate, tried
        return None, tried

    def find_by_secret(self, secret: str) -> Integration | None:
        return self.repo.get_active_by_secret(self.provider_type, secret)

    def is_configured(self) -> bool:
        return self.repo.exists_for_provider(self.provider_type)


@dataclass
class SecretResolution:
    integration: Integration
    method: str
    candidates_tried: int = 0


class SignatureSecretResolver:
    """Signature brute-force mode: both headers required, first matching candidate wins."""

    def __init__(self, provider_type: str, signature_header: str, domain_header: str):
        self.provider_type = provider_type
        self.signature_header = signature_header
        self.domain_header = domain_header

    def resolve(
        self, db: Session, request: InboundRequest, request_id: str, audit: AuditSink
    ) -> SecretResolution:
        signature = request.header(self.signature_header)
        domain = request.header(self.domain_header)
        if not signature or not domain:
            missing = [
                name
                for name, value in (
                    (self.signature_header, signature),
                    (self.domain_header, domain),
                )
                if not value
            ]
            audit.processing_step(
                request_id,
                "authentication_failed",
                provider=self.provider_type,
                data={"reason": "missing_headers", "missing": missing},
            )
            raise AuthenticationError(
                f"Missing required header(s): {', '.join(missing)}",
                code="missing_signature",
            )

        store = CredentialStore(db, self.provider_type)
        integration, tried = store.find_matching_candidate(
            request.raw_body, signature, discriminator=domain
        )
        audit.processing_step(
            request_id,
            "signature_check",
            provider=self.provider_type,
            data={
                "shop_domain": domain,
                "signature": mask_secret(signature, 16),
                "candidates_tried": tried,
                "matched": integration is not None,
            },
        )
        if integration is None:
            _reject_unmatched(store, request_id, tried)
        return SecretResolution(integration=integration, method="signature", candidates_tried=tried)


@dataclass(frozen=True)
class SecretChannel:
    """One place a caller may present an explicit shared secret."""

    name: str
    extract: Callable[[InboundRequest], str | None]


def _header_channel(header: str) -> SecretChannel:
    return SecretChannel(f"header:{header}", lambda r: r.header(header))


def _query_channel(param: str) -> SecretChannel:
    return SecretChannel(f"query:{param}", lambda r: r.query_params.get(param) or None)


def _body_channel(key: str) -> SecretChannel:
    def extract(request: InboundRequest) -> str | None:
        body: Any = request.json_body
        if isinstance(body, dict):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
        return None

    return SecretChannel(f"body:{key}", extract)


class DirectSecretResolver:
    """Direct-secret mode with signature fallback.

    Explicit secrets are looked up exactly. When none is presented, the
    provider's signature header is tried first as a literal secret and then
    as an HMAC signature over the raw body.
    """

    def __init__(
        self,
        provider_type: str,
        secret_header: str,
        signature_header: str,
        query_params: tuple[str, ...] = ("secret", "webhook_secret"),
        body_field: str = "webhook_secret",
    ):
        self.provider_type = provider_type
        self.signature_header = signature_header
        self.channels: list[SecretChannel] = [
            _header_channel(secret_header),
            *(_query_channel(p) for p in query_params),
            _body_channel(body_field),
        ]

    def checked_channels(self) -> list[str]:
        return [c.name for c in self.channels] + [f"header:{self.signature_header}"]

    def resolve(
        self, db: Session, request: InboundRequest, request_id: str, audit: AuditSink
    ) -> SecretResolution:
        store = CredentialStore(db, self.provider_type)

        for channel in self.channels:
            secret = channel.extract(request)
            if not secret:
                continue
            integration = store.find_by_secret(secret)
            audit.processing_step(
                request_id,
                "secret_lookup",
                provider=self.provider_type,
                data={
                    "channel": channel.name,
                    "secret": mask_secret(secret),
                    "matched": integration is not None,
                },
            )
            if integration is None:
                _reject_unmatched(store, request_id, 1)
            return SecretResolution(integration=integration, method=channel.name)

        signature = request.header(self.signature_header)
        if not signature:
            checked = self.checked_channels()
            audit.processing_step(
                request_id,
                "authentication_failed",
                provider=self.provider_type,
                data={"reason": "no_credentials", "checked": checked},
            )
            raise AuthenticationError(
                "No webhook secret or signature provided. Checked: " + ", ".join(checked),
                code="missing_webhook_secret",
            )

        # Some setups paste the shared secret where the signature would go.
        integration = store.find_by_secret(signature)
        if integration is not None:
            audit.processing_step(
                request_id,
                "secret_lookup",
                provider=self.provider_type,
                data={
                    "channel": f"header:{self.signature_header}",
                    "secret": mask_secret(signature),
                    "matched": True,
                },
            )
            return SecretResolution(integration=integration, method="signature_literal")

        integration, tried = store.find_matching_candidate(request.raw_body, signature)
        audit.processing_step(
            request_id,
            "signature_check",
            provider=self.provider_type,
            data={
                "signature": mask_secret(signature, 16),
                "candidates_tried": tried,
                "matched": integration is not None,
            },
        )
        if integration is None:
            _reject_unmatched(store, request_id, tried)
        return SecretResolution(integration=integration, method="signature", candidates_tried=tried)


def _reject_unmatched(store: CredentialStore, request_id: str, tried: int) -> NoReturn:
    """Raise the error for a request that matched no active integration."""
    if not store.is_configured():
        logger.warning("No %s integration is configured", store.provider_type)
        raise TenantNotConfiguredError(
            f"No {store.provider_type} integration is configured",
        )
    logger.info(
        "[%s] %s request matched none of %d candidate(s)", request_id, store.provider_type, tried
    )
    raise AuthenticationError(NO_MATCH_MESSAGE, code="no_matching_integration")
