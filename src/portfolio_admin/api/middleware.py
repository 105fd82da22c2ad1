"""Edge middleware: request logging, security headers, rate limiting and
the dashboard authorization gate.

Registration order in :func:`portfolio_admin.main.create_app` makes the
request flow logging -> security headers -> rate limit -> gate -> routes,
so throttled and redirected responses still carry the security headers.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable, Iterable
from urllib.parse import urlencode

from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response
from starlette.types import ASGIApp

from portfolio_admin.core.errors import BackendFailure, InvalidSession, RateLimited
from portfolio_admin.core.settings import Settings
from portfolio_admin.repositories.admin_repo import AdminRepository
from portfolio_admin.services.error_sanitizer import log_error
from portfolio_admin.services.rate_limit import RateLimiterRegistry
from portfolio_admin.services.session_tokens import SessionClaims, SessionTokenService

LOG = logging.getLogger("portfolio_admin.requests")

SECURITY_HEADERS: dict[str, str] = {
    "X-DNS-Prefetch-Control": "on",
    "Strict-Transport-Security": "max-age=63072000; includeSubDomains; preload",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Content-Type-Options": "nosniff",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=(), interest-cohort=()",
}

REDACT_HEADERS = {"authorization", "cookie", "set-cookie", "x-csrf-token"}


def matches_prefix(path: str, prefix: str) -> bool:
    """Return True if ``path`` is ``prefix`` or lies underneath it."""
    base = prefix.rstrip("/")
    return path == base or path.startswith(base + "/")


def _matches_any(path: str, prefixes: Iterable[str]) -> bool:
    return any(matches_prefix(path, prefix) for prefix in prefixes)


def _redact_headers(headers: dict[str, str]) -> dict[str, str]:
    out = {}
    for key, value in headers.items():
        if key.lower() in REDACT_HEADERS:
            out[key] = "[REDACTED]"
        else:
            out[key] = value if len(value) < 200 else value[:200] + "..."
    return out


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log one line per request and stamp ``X-Request-Id`` on the response."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        rid = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
        finally:
            duration_ms = int((time.perf_counter() - start) * 1000)
            LOG.info(
                "%s %s -> %s (%dms)",
                request.method,
                request.url.path,
                status_code,
                duration_ms,
                extra={
                    "request_id": rid,
                    "headers": _redact_headers(dict(request.headers)),
                },
            )
        response.headers["X-Request-Id"] = rid
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Stamp defensive HTTP headers on every response."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers[name] = value
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Throttle every request with the auth or standard policy.

    Paths under one of ``auth_prefixes`` use the ``auth`` policy; all other
    paths use ``standard``.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        limiters: RateLimiterRegistry,
        auth_prefixes: Iterable[str],
    ) -> None:
        super().__init__(app)
        self.limiters = limiters
        self.auth_prefixes = tuple(auth_prefixes)

    def policy_for(self, path: str) -> str:
        return "auth" if _matches_any(path, self.auth_prefixes) else "standard"

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            self.limiters[self.policy_for(request.url.path)].check(request)
        except RateLimited as exc:
            LOG.warning("rate limit exceeded on %s", request.url.path)
            return JSONResponse(exc.to_payload(), status_code=exc.status_code, headers=exc.headers())
        return await call_next(request)


class AuthorizationGateMiddleware(BaseHTTPMiddleware):
    """Guard dashboard pages before any route handler runs.

    * Protected path without a valid session: redirect to the login page with
      the requested path preserved in ``next``.
    * Valid token whose principal no longer exists (or changed email):
      redirect to login with ``error=no_access``.
    * Login page with a valid session: redirect to the dashboard home.

    Verified claims are exposed to handlers as ``request.state.admin_session``.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        settings: Settings,
        tokens: SessionTokenService,
        session_factory: sessionmaker[Session] | Callable[[], Session],
    ) -> None:
        super().__init__(app)
        self.cookie_name = settings.session_cookie_name
        self.protected_prefixes = tuple(settings.protected_path_prefixes)
        self.unprotected_prefixes = tuple(settings.unprotected_path_prefixes)
        self.login_path = settings.login_path
        self.dashboard_home_path = settings.dashboard_home_path
        self.tokens = tokens
        self.session_factory = session_factory
        self.production = settings.is_production

    def is_protected(self, path: str) -> bool:
        return _matches_any(path, self.protected_prefixes) and not _matches_any(
            path, self.unprotected_prefixes
        )

    def _claims(self, request: Request) -> SessionClaims | None:
        token = request.cookies.get(self.cookie_name)
        if not token:
            return None
        try:
            return self.tokens.verify(token)
        except InvalidSession:
            return None

    def _principal_still_matches(self, claims: SessionClaims) -> bool:
        db = self.session_factory()
        try:
            admin = AdminRepository(db).find_matching(claims.principal_id, claims.email)
        except BackendFailure as failure:
            log_error(failure.context, failure.cause, production=self.production)
            return False
        finally:
            db.close()
        return admin is not None

    def _login_redirect(self, next_target: str, error: str | None = None) -> RedirectResponse:
        params = {"next": next_target}
        if error:
            params["error"] = error
        return RedirectResponse(f"{self.login_path}?{urlencode(params)}")

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path

        if self.is_protected(path):
            claims = self._claims(request)
            if claims is None:
                query = request.url.query
                return self._login_redirect(f"{path}?{query}" if query else path)
            if not await run_in_threadpool(self._principal_still_matches, claims):
                return self._login_redirect(path, error="no_access")
            request.state.admin_session = claims

        elif matches_prefix(path, self.login_path) and self._claims(request) is not None:
            return RedirectResponse(self.dashboard_home_path)

        return await call_next(request)
