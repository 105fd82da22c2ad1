"""Security services for the Portfolio Admin application."""

from .csrf import CsrfGuard
from .error_sanitizer import classify, log_error, sanitize
from .rate_limit import RateLimiter, RateLimiterRegistry, RateLimitPolicy
from .session_tokens import AdminIdentity, SessionClaims, SessionTokenService

__all__ = [
    "AdminIdentity",
    "CsrfGuard",
    "RateLimitPolicy",
    "RateLimiter",
    "RateLimiterRegistry",
    "SessionClaims",
    "SessionTokenService",
    "classify",
    "log_error",
    "sanitize",
]
