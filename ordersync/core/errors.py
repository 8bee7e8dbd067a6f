"""Error taxonomy for webhook ingestion.

Every failure raised inside the pipeline is an ``IngestionError`` subclass
carrying a machine-readable ``code``, a caller-safe ``message`` and the HTTP
status the orchestrator answers with. ``NotificationError`` is the exception:
it is raised only inside the dispatcher and never reaches a response.
"""

from typing import Any


class IngestionError(Exception):
    """Base class for errors that translate into an HTTP error response."""

    status_code = 500
    default_code = "internal_error"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        detail: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        # Audit-only context; never rendered into the response body.
        self.detail = detail or {}

    def to_response_body(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message}


class AuthenticationError(IngestionError):
    status_code = 401
    default_code = "authentication_failed"


class ValidationError(IngestionError):
    status_code = 400
    default_code = "validation_failed"

    def __init__(self, message: str, code: str | None = None, field: str | None = None):
        super().__init__(message, code=code, detail={"field": field} if field else None)
        self.field = field

    def to_response_body(self) -> dict[str, Any]:
        body = super().to_response_body()
        if self.field:
            body["field"] = self.field
        return body


class TenantNotConfiguredError(IngestionError):
    status_code = 404
    default_code = "integration_not_configured"


class PersistenceError(IngestionError):
    status_code = 500
    default_code = "database_error"


class NotificationError(Exception):
    """Raised by notification channels; logged by the dispatcher, never surfaced."""
