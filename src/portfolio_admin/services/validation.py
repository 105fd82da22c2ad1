"""Input validation and sanitization helpers.

Each validator either returns the cleaned value or raises
:class:`~portfolio_admin.core.errors.ValidationError` naming the offending
field, so handlers can reject bad input before touching the backend.
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import urlsplit

from portfolio_admin.core.errors import ValidationError

MAX_TEXT_LENGTH = 10_000
MAX_EMAIL_LENGTH = 254
MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 128

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
_SPECIAL_CHARS = set("!@#$%^&*()_+-=[]{};':\"\\|,.<>/?")


def sanitize_string(value: object) -> str:
    """Strip markup-ish fragments from free text and cap its length."""
    if not isinstance(value, str):
        return ""
    cleaned = value.strip()
    cleaned = re.sub(r"[<>]", "", cleaned)
    cleaned = re.sub(r"javascript:", "", cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r"on\w+=", "", cleaned, flags=re.IGNORECASE)
    return cleaned[:MAX_TEXT_LENGTH]


def validate_email(email: object) -> str:
    """Return the lower-cased email or raise."""
    if not email or not isinstance(email, str):
        raise ValidationError("Email is required", "email")
    cleaned = email.strip().lower()
    if not _EMAIL_RE.match(cleaned):
        raise ValidationError("Invalid email format", "email")
    if len(cleaned) > MAX_EMAIL_LENGTH:
        raise ValidationError("Email is too long", "email")
    return cleaned


def validate_password(password: object) -> None:
    """Enforce the password strength policy."""
    if not password or not isinstance(password, str):
        raise ValidationError("Password is required", "password")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long", "password"
        )
    if len(password) > MAX_PASSWORD_LENGTH:
        raise ValidationError("Password is too long", "password")
    if not re.search(r"[A-Z]", password):
        raise ValidationError("Password must contain at least one uppercase letter", "password")
    if not re.search(r"[a-z]", password):
        raise ValidationError("Password must contain at least one lowercase letter", "password")
    if not re.search(r"[0-9]", password):
        raise ValidationError("Password must contain at least one number", "password")
    if not any(char in _SPECIAL_CHARS for char in password):
        raise ValidationError(
            "Password must contain at least one special character", "password"
        )


def validate_url(
    url: object,
    allowed_domains: Iterable[str] | None = None,
    *,
    https_only: bool = False,
) -> str:
    """Return ``url`` if it is an http(s) URL on an allowed domain.

    Callers pass ``https_only=settings.is_production`` so that only ``https``
    is accepted in production.
    """
    if not url or not isinstance(url, str):
        raise ValidationError("URL is required", "url")
    try:
        parts = urlsplit(url.strip())
    except ValueError as err:
        raise ValidationError("Invalid URL format", "url") from err
    if parts.scheme not in {"http", "https"} or not parts.hostname:
        raise ValidationError("Invalid URL format", "url")
    if https_only and parts.scheme != "https":
        raise ValidationError("Only HTTPS URLs are allowed", "url")

    domains = [domain.lower() for domain in allowed_domains or ()]
    if domains:
        hostname = parts.hostname.lower()
        if not any(hostname == domain or hostname.endswith(f".{domain}") for domain in domains):
            raise ValidationError(f"URL domain not allowed: {hostname}", "url")
    return parts.geturl()


def validate_text(
    text: object,
    *,
    min_length: int = 0,
    max_length: int = MAX_TEXT_LENGTH,
    required: bool = False,
    field: str | None = None,
) -> str:
    """Sanitize free text and enforce length bounds."""
    if required and (not isinstance(text, str) or not text.strip()):
        raise ValidationError("This field is required", field)
    if not text:
        return ""
    cleaned = sanitize_string(text)
    if len(cleaned) < min_length:
        raise ValidationError(f"Text must be at least {min_length} characters long", field)
    if len(cleaned) > max_length:
        raise ValidationError(f"Text must be no more than {max_length} characters long", field)
    return cleaned


def validate_uuid(value: object) -> str:
    """Return ``value`` if it is a canonical UUID string."""
    if not value or not isinstance(value, str):
        raise ValidationError("UUID is required", "uuid")
    if not _UUID_RE.match(value):
        raise ValidationError("Invalid UUID format", "uuid")
    return str(uuid.UUID(value))


def sanitize_object(data: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively sanitize every string inside ``data``."""
    sanitized: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, str):
            sanitized[key] = sanitize_string(value)
        elif isinstance(value, Mapping):
            sanitized[key] = sanitize_object(value)
        elif isinstance(value, list):
            sanitized[key] = [
                sanitize_string(item) if isinstance(item, str) else item for item in value
            ]
        else:
            sanitized[key] = value
    return sanitized
