"""Exception hierarchy for the tenancy and billing core.

Each class carries the HTTP status it maps to; the API layer renders any
``GalleriaError`` through a single exception handler.
"""
from typing import Any, Dict, Optional


class GalleriaError(Exception):
    """Base exception for all domain errors."""

    status_code: int = 500

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context or {}


class NotConfiguredError(GalleriaError):
    """A required external credential or store is absent."""

    status_code = 503


class NotFoundError(GalleriaError):
    """Tenant, subscription or add-on referenced by an operation does not exist."""

    status_code = 404


class LimitExceededError(GalleriaError):
    """Enforcement denial. Carries the usage figures for client messaging."""

    status_code = 403

    def __init__(
        self,
        message: str,
        resource: str,
        used: int,
        limit: int,
        percent_used: int,
    ) -> None:
        super().__init__(
            message,
            {
                "resource": resource,
                "used": used,
                "limit": limit,
                "percent_used": percent_used,
            },
        )
        self.resource = resource
        self.used = used
        self.limit = limit
        self.percent_used = percent_used


class ConflictError(GalleriaError):
    """Creation would violate a uniqueness invariant."""

    status_code = 409


class UntrustedWebhookError(GalleriaError):
    """Webhook signature verification failed."""

    status_code = 400


class UpstreamUnavailableError(GalleriaError):
    """Payment processor or object storage call failed or timed out."""

    status_code = 502


class ValidationFailedError(GalleriaError):
    """Input rejected by a domain rule."""

    status_code = 400
