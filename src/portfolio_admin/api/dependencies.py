"""Shared API dependencies for authentication, CSRF and rate limiting."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from portfolio_admin.core.errors import InvalidSession, MethodNotAllowed
from portfolio_admin.core.settings import Settings
from portfolio_admin.db.session import get_db
from portfolio_admin.services.csrf import CsrfGuard
from portfolio_admin.services.rate_limit import RateLimitDecision, RateLimiterRegistry
from portfolio_admin.services.session_tokens import SessionClaims, SessionTokenService

DEFAULT_ALLOWED_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH")


def get_settings(request: Request) -> Settings:
    """Return the settings the application was built with."""
    return request.app.state.settings


def get_session_tokens(request: Request) -> SessionTokenService:
    return request.app.state.session_tokens


def get_rate_limiters(request: Request) -> RateLimiterRegistry:
    return request.app.state.rate_limiters


def get_csrf_guard(request: Request) -> CsrfGuard:
    return request.app.state.csrf_guard


# Type aliases for dependency injection
SessionDep = Annotated[Session, Depends(get_db)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
TokensDep = Annotated[SessionTokenService, Depends(get_session_tokens)]
RateLimitersDep = Annotated[RateLimiterRegistry, Depends(get_rate_limiters)]
CsrfGuardDep = Annotated[CsrfGuard, Depends(get_csrf_guard)]


def session_from_request(request: Request) -> SessionClaims:
    """Verify the session cookie carried by ``request``.

    Raises:
        InvalidSession: If the cookie is absent or does not verify.
    """
    settings = get_settings(request)
    token = request.cookies.get(settings.session_cookie_name)
    if not token:
        raise InvalidSession("Unauthorized. Please log in.")
    return get_session_tokens(request).verify(token)


def current_session(request: Request) -> SessionClaims:
    """Dependency requiring a valid admin session cookie."""
    return session_from_request(request)


CurrentSessionDep = Annotated[SessionClaims, Depends(current_session)]


def rate_limit(policy: str) -> Callable[[Request], RateLimitDecision]:
    """Build a dependency that counts the request against ``policy``."""

    def check_rate_limit(request: Request) -> RateLimitDecision:
        return get_rate_limiters(request)[policy].check(request)

    return check_rate_limit


def secure_endpoint(
    *,
    require_auth: bool = False,
    require_csrf: bool = True,
    policy: str = "standard",
    allowed_methods: Iterable[str] = DEFAULT_ALLOWED_METHODS,
) -> Callable[[Request], Awaitable[SessionClaims | None]]:
    """Build the guard dependency for a secured endpoint.

    Checks run in order: allowed method, rate limit, CSRF (state-changing
    verbs only), then session. The dependency returns the verified session
    claims when ``require_auth`` is set and ``None`` otherwise.
    """
    methods = frozenset(method.upper() for method in allowed_methods)

    async def guard(request: Request) -> SessionClaims | None:
        if request.method.upper() not in methods:
            raise MethodNotAllowed()
        get_rate_limiters(request)[policy].check(request)
        if require_csrf:
            await get_csrf_guard(request).protect(request)
        if require_auth:
            return session_from_request(request)
        return None

    return guard
