"""Application settings and configuration.

This module defines all configuration options for the Portfolio Admin service.
Settings are loaded from environment variables (or an optional `.env` file)
with development-friendly defaults. Production deployments must provide a
signing secret and a database URL; construction fails otherwise so the
process never starts in an insecure mode.
"""

from __future__ import annotations

import secrets
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MIN_JWT_SECRET_LENGTH = 32
DEFAULT_DATABASE_URL = "sqlite:///./portfolio.db"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application metadata
    app_name: str = Field(default="Portfolio Admin", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    environment: Literal["development", "test", "production"] = Field(
        default="development",
        alias="ENVIRONMENT",
    )
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Session tokens
    jwt_secret: str | None = Field(default=None, alias="JWT_SECRET")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    session_ttl_seconds: int = Field(default=60 * 60 * 24 * 7, alias="SESSION_TTL_SECONDS")
    session_cookie_name: str = Field(default="admin_session", alias="SESSION_COOKIE_NAME")

    # CSRF protection
    csrf_cookie_name: str = Field(default="csrf-token", alias="CSRF_COOKIE_NAME")
    csrf_header_name: str = Field(default="X-CSRF-Token", alias="CSRF_HEADER_NAME")
    csrf_form_field: str = Field(default="csrf_token", alias="CSRF_FORM_FIELD")
    csrf_ttl_seconds: int = Field(default=60 * 60 * 24, alias="CSRF_TTL_SECONDS")

    # Database configuration
    database_url: str | None = Field(default=None, alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Route protection
    protected_path_prefixes: list[str] = Field(
        default=["/dashboard"],
        alias="PROTECTED_PATH_PREFIXES",
    )
    unprotected_path_prefixes: list[str] = Field(
        default=["/api"],
        alias="UNPROTECTED_PATH_PREFIXES",
    )
    login_path: str = Field(default="/login", alias="LOGIN_PATH")
    dashboard_home_path: str = Field(default="/dashboard", alias="DASHBOARD_HOME_PATH")

    # Rate limiting
    auth_rate_limit_prefixes: list[str] = Field(
        default=["/api/auth", "/login", "/register"],
        alias="AUTH_RATE_LIMIT_PREFIXES",
    )
    rate_limit_backend: Literal["memory", "redis"] = Field(
        default="memory",
        alias="RATE_LIMIT_BACKEND",
    )
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    @model_validator(mode="after")
    def _check_required_secrets(self) -> "Settings":
        """Refuse to run production without a strong secret and a database."""
        if self.is_production:
            problems: list[str] = []
            if not self.jwt_secret:
                problems.append("JWT_SECRET is not set")
            elif len(self.jwt_secret) < MIN_JWT_SECRET_LENGTH:
                problems.append(
                    f"JWT_SECRET must be at least {MIN_JWT_SECRET_LENGTH} characters long"
                )
            if not self.database_url:
                problems.append("DATABASE_URL is not set")
            if problems:
                raise ValueError("Invalid production configuration: " + "; ".join(problems))
            return self

        # Outside production, fall back to values that keep the app bootable.
        # An ephemeral secret invalidates sessions on every restart.
        if not self.jwt_secret:
            self.jwt_secret = secrets.token_urlsafe(48)
        if not self.database_url:
            self.database_url = DEFAULT_DATABASE_URL
        return self

    @property
    def is_production(self) -> bool:
        """Return True when running with production hardening enabled."""
        return self.environment == "production"

    @property
    def cookie_secure(self) -> bool:
        """Return whether cookies must carry the `Secure` attribute."""
        return self.is_production

    @property
    def effective_database_url(self) -> str:
        """Return the configured database URL.

        Returns:
            The active database URL (always populated after validation)
        """
        return self.database_url or DEFAULT_DATABASE_URL


settings = Settings()  # type: ignore[call-arg]
