# src/portfolio_admin/main.py
"""Main entry point for the Portfolio Admin application."""

from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from portfolio_admin.api.middleware import (
    AuthorizationGateMiddleware,
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from portfolio_admin.api.pages import router as pages_router
from portfolio_admin.api.v1 import auth_router, dev_router, example_router
from portfolio_admin.core.errors import BackendFailure, PortfolioAdminError, ValidationError
from portfolio_admin.core.logging_config import configure_logging
from portfolio_admin.core.settings import Settings, settings
from portfolio_admin.db.session import build_engine, build_session_factory, create_tables
from portfolio_admin.services.csrf import CsrfGuard
from portfolio_admin.services.error_sanitizer import log_error, public_message
from portfolio_admin.services.rate_limit import RateLimiterRegistry, build_rate_limiters
from portfolio_admin.services.session_tokens import SessionTokenService

logger = logging.getLogger(__name__)


async def _portfolio_error_handler(request: Request, exc: PortfolioAdminError) -> JSONResponse:
    if isinstance(exc, BackendFailure):
        cfg: Settings = request.app.state.settings
        log_error(
            exc.context,
            exc.cause if exc.cause is not None else exc.context,
            production=cfg.is_production,
        )
        return JSONResponse({"error": public_message(exc)}, status_code=exc.status_code)
    return JSONResponse(exc.to_payload(), status_code=exc.status_code, headers=exc.headers())


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.debug("rejected request body on %s: %s", request.url.path, exc.errors())
    error = ValidationError("Invalid request body")
    return JSONResponse(error.to_payload(), status_code=error.status_code)


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        {"error": str(exc.detail)},
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


def create_app(
    app_settings: Settings | None = None,
    *,
    session_factory: Callable[[], Session] | None = None,
    rate_limiters: RateLimiterRegistry | None = None,
) -> FastAPI:
    """Build the application.

    Args:
        app_settings: Settings to use; defaults to the process-wide instance.
        session_factory: Database session factory. When omitted an engine is
            built from ``DATABASE_URL``.
        rate_limiters: Pre-built limiter registry, mainly for tests that
            need a controllable clock.
    """
    cfg = app_settings or settings
    configure_logging(cfg.log_level)

    engine = None
    if session_factory is None:
        engine = build_engine(cfg.effective_database_url, echo=cfg.sql_debug)
        session_factory = build_session_factory(engine)

    tokens = SessionTokenService.from_settings(cfg)
    limiters = rate_limiters or build_rate_limiters(cfg)

    app = FastAPI(
        title=cfg.app_name,
        description="Authentication and request hardening for the portfolio admin dashboard",
        version=cfg.app_version,
    )
    app.state.settings = cfg
    app.state.session_factory = session_factory
    app.state.session_tokens = tokens
    app.state.rate_limiters = limiters
    app.state.csrf_guard = CsrfGuard(cfg)

    # Added innermost first: requests flow logging -> headers -> rate limit -> gate.
    app.add_middleware(
        AuthorizationGateMiddleware,
        settings=cfg,
        tokens=tokens,
        session_factory=session_factory,
    )
    app.add_middleware(
        RateLimitMiddleware,
        limiters=limiters,
        auth_prefixes=cfg.auth_rate_limit_prefixes,
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)

    app.add_exception_handler(PortfolioAdminError, _portfolio_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _request_validation_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)  # type: ignore[arg-type]

    # Include API routers
    app.include_router(auth_router, prefix="/api")
    app.include_router(example_router, prefix="/api")
    app.include_router(dev_router, prefix="/api")
    app.include_router(pages_router)

    @app.on_event("startup")
    async def on_startup() -> None:
        if engine is not None and not cfg.is_production:
            create_tables(engine)
        logger.info("%s started in %s mode", cfg.app_name, cfg.environment)

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        if engine is not None:
            engine.dispose()

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint to verify the service is running."""
        return {"status": "ok"}

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("portfolio_admin.main:app", host="0.0.0.0", port=8000, reload=not settings.is_production)
