"""Exception taxonomy for the request hardening layer.

Every error that can reach a client is one of the classes below. Each class
knows its HTTP status code and how to render itself as a JSON body.
:class:`BackendFailure` is the exception: its cause is never rendered here,
the handler in :mod:`portfolio_admin.main` runs it through the error
sanitizer first.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import status

if TYPE_CHECKING:  # pragma: no cover - typing only
    from portfolio_admin.services.rate_limit import RateLimitDecision


class PortfolioAdminError(Exception):
    """Base class for errors that are safe to report to the caller."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON body sent to the client."""
        return {"error": self.message}

    def headers(self) -> dict[str, str] | None:
        """Return extra response headers, if any."""
        return None


class ValidationError(PortfolioAdminError):
    """Bad input detected before touching the backend."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        if self.field is not None:
            payload["field"] = self.field
        return payload


class InvalidSession(PortfolioAdminError):
    """Missing, expired, tampered or malformed session token."""

    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Invalid session. Please log in again.") -> None:
        super().__init__(message)


class InvalidCredentials(PortfolioAdminError):
    """Unknown principal or wrong password."""

    status_code = status.HTTP_401_UNAUTHORIZED


class Forbidden(PortfolioAdminError):
    """Authenticated (or anonymous) caller that is not entitled to the action."""

    status_code = status.HTTP_403_FORBIDDEN


class MethodNotAllowed(PortfolioAdminError):
    """HTTP verb not accepted by a secured endpoint."""

    status_code = status.HTTP_405_METHOD_NOT_ALLOWED

    def __init__(self) -> None:
        super().__init__("Method not allowed")


class RateLimited(PortfolioAdminError):
    """Request rejected by a rate-limit policy."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, decision: RateLimitDecision) -> None:
        super().__init__("Too many requests")
        self.decision = decision

    def to_payload(self) -> dict[str, Any]:
        return {
            "error": self.message,
            "message": "Rate limit exceeded. Please try again later.",
            "retryAfter": self.decision.retry_after,
        }

    def headers(self) -> dict[str, str]:
        return self.decision.headers()


class BackendFailure(PortfolioAdminError):
    """Any failure surfaced by the external data store.

    Args:
        context: Operator-facing label used when logging the failure.
        cause: The original driver exception; never shown to the client.
        public_message: Fixed client-facing text. When omitted the exception
            handler sends the sanitized cause instead.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        context: str,
        cause: BaseException | None = None,
        public_message: str | None = None,
    ) -> None:
        super().__init__(public_message or "")
        self.context = context
        self.cause = cause
        self.public_message = public_message

    def with_public_message(self, public_message: str) -> "BackendFailure":
        """Return a copy of this failure carrying a fixed client message."""
        return BackendFailure(self.context, self.cause, public_message)

