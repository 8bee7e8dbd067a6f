"""Provider adapter abstraction.

Each storefront provider contributes exactly two things to the ingestion
pipeline: how to authenticate an inbound request, and how to normalize its
payload. Everything after that is provider-agnostic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.orm import Session

from ordersync.models.integration import Integration
from ordersync.schemas.ingestion import NormalizedOrder
from ordersync.services.audit_service import AuditSink


@dataclass
class InboundRequest:
    """An inbound webhook request as received, before any interpretation.

    ``raw_body`` holds the exact bytes received; signatures are always
    computed over these, never over a re-serialized parse.
    """

    method: str
    url: str
    raw_body: bytes
    headers: dict[str, str] = field(default_factory=dict)
    query_params: dict[str, str] = field(default_factory=dict)
    json_body: Any = None

    def __post_init__(self) -> None:
        self.headers = {k.lower(): v for k, v in self.headers.items()}

    @classmethod
    def build(
        cls,
        method: str,
        url: str,
        raw_body: bytes,
        headers: Mapping[str, str],
        query_params: Mapping[str, str],
        json_body: Any = None,
    ) -> InboundRequest:
        return cls(
            method=method,
            url=url,
            raw_body=raw_body,
            headers=dict(headers.items()),
            query_params=dict(query_params.items()),
            json_body=json_body,
        )

    def header(self, name: str) -> str | None:
        value = self.headers.get(name.lower())
        return value if value else None


class ProviderAdapter(ABC):
    """Abstract base class for storefront providers."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider enum value."""
        pass  # pragma: no cover

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Human-readable provider name used in notifications."""
        pass  # pragma: no cover

    @abstractmethod
    def authenticate(
        self, db: Session, request: InboundRequest, request_id: str, audit: AuditSink
    ) -> Integration:
        """Resolve the request to exactly one active integration or raise AuthenticationError."""
        pass  # pragma: no cover

    @abstractmethod
    def normalize(self, payload: Any) -> NormalizedOrder:
        """Map a provider payload to a NormalizedOrder or raise ValidationError."""
        pass  # pragma: no cover
