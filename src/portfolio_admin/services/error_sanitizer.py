"""Turn internal and backend errors into short, user-safe messages.

The untyped error is inspected exactly once, in :func:`classify`, which pulls
out a message and an optional vendor code and maps them to an
:class:`ErrorCategory`. :func:`sanitize` then works only with that
classification. Nothing derived from a backend error reaches the client
unless it survives identifier stripping and the technical-vocabulary check.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from portfolio_admin.core.errors import BackendFailure

logger = logging.getLogger("portfolio_admin.errors")

GENERIC_MESSAGE = "An unexpected error occurred. Please try again later."
TECHNICAL_FALLBACK_MESSAGE = (
    "An error occurred while processing your request. Please try again later."
)
MIN_PASSTHROUGH_LENGTH = 10


class ErrorCategory(Enum):
    """Fixed, client-safe classes of failure."""

    UNIQUE_VIOLATION = "unique_violation"
    REFERENTIAL_VIOLATION = "referential_violation"
    REQUIRED_FIELD = "required_field"
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    CONNECTIVITY = "connectivity"
    TIMEOUT = "timeout"
    MALFORMED_INPUT = "malformed_input"
    UNCLASSIFIED = "unclassified"


CATEGORY_MESSAGES: dict[ErrorCategory, str] = {
    ErrorCategory.UNIQUE_VIOLATION: "This information already exists. Please use a different value.",
    ErrorCategory.REFERENTIAL_VIOLATION: (
        "This operation cannot be completed due to related data. Please check your input."
    ),
    ErrorCategory.REQUIRED_FIELD: "Please fill in all required fields.",
    ErrorCategory.NOT_FOUND: "The requested information could not be found.",
    ErrorCategory.PERMISSION_DENIED: "You do not have permission to perform this action.",
    ErrorCategory.CONNECTIVITY: (
        "Unable to connect to the server. Please check your internet connection and try again."
    ),
    ErrorCategory.TIMEOUT: "The request took too long. Please try again.",
    ErrorCategory.MALFORMED_INPUT: (
        "The information provided is invalid. Please check your input and try again."
    ),
}

# Vendor (SQLSTATE / PostgREST) codes, checked before the message text.
_CODE_CATEGORIES: tuple[tuple[re.Pattern[str], ErrorCategory], ...] = (
    (re.compile(r"^23505$"), ErrorCategory.UNIQUE_VIOLATION),
    (re.compile(r"^23503$"), ErrorCategory.REFERENTIAL_VIOLATION),
    (re.compile(r"^23502$"), ErrorCategory.REQUIRED_FIELD),
    (re.compile(r"^(42P01|42703|PGRST116)$", re.I), ErrorCategory.NOT_FOUND),
    (re.compile(r"^(42501|PGRST301)$", re.I), ErrorCategory.PERMISSION_DENIED),
    (re.compile(r"^08\w{3}$"), ErrorCategory.CONNECTIVITY),
    (re.compile(r"^57014$"), ErrorCategory.TIMEOUT),
    (re.compile(r"^(22\w{3}|42601)$"), ErrorCategory.MALFORMED_INPUT),
)

# Ordered: the first matching category wins.
_MESSAGE_CATEGORIES: tuple[tuple[re.Pattern[str], ErrorCategory], ...] = (
    (re.compile(r"duplicate|unique"), ErrorCategory.UNIQUE_VIOLATION),
    (re.compile(r"foreign key"), ErrorCategory.REFERENTIAL_VIOLATION),
    (re.compile(r"not[ -]null|null value|required"), ErrorCategory.REQUIRED_FIELD),
    (re.compile(r"constraint"), ErrorCategory.REFERENTIAL_VIOLATION),
    (re.compile(r"does not exist|not found|no such"), ErrorCategory.NOT_FOUND),
    (re.compile(r"permission|unauthori[sz]ed|forbidden|access denied"),
     ErrorCategory.PERMISSION_DENIED),
    (re.compile(r"timeout|timed out"), ErrorCategory.TIMEOUT),
    (re.compile(r"connection|network|could not connect|unreachable"),
     ErrorCategory.CONNECTIVITY),
    (re.compile(r"invalid|syntax|malformed"), ErrorCategory.MALFORMED_INPUT),
)

# (pattern, replacement) pairs applied before anything else looks at the text.
_STRIP_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\b(?:table|relation)\s+['\"]?[\w.]+['\"]?\s+(?:does not exist|already exists)", re.I), ""),
    (re.compile(r"\bfrom\s+['\"]?[\w.]+['\"]?", re.I), ""),
    (re.compile(r"\binto\s+['\"]?[\w.]+['\"]?", re.I), ""),
    (re.compile(r"\bupdate\s+['\"]?[\w.]+['\"]?", re.I), ""),
    (re.compile(r"\bcolumn\s+['\"]?[\w.]+['\"]?\s*", re.I), "field "),
    (re.compile(r"\b\w+\s+column\b", re.I), "field"),
    (re.compile(r"\(SQLSTATE\s+\w+\)", re.I), ""),
    (re.compile(r"\(PGRST\d+\)", re.I), ""),
    (re.compile(r"\b[a-z][a-z0-9+.-]*://\S+", re.I), "[connection]"),
    (re.compile(r"\"[^\"]*\"|'[^']*'|`[^`]*`"), ""),
)

_TECHNICAL_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(
        r"\b(?:supabase|postgres|postgresql|postgrest|psycopg\d?|sqlite\d?|sqlalchemy|"
        r"mysql|redis|sql|database|db)\b",
        re.I,
    ),
    re.compile(r"\b(?:table|column|relation|schema|constraint|index)\b", re.I),
    re.compile(r"\b(?:select|insert|update|delete|from|where|join)\b", re.I),
    re.compile(r"\b(?:SQLSTATE|PGRST\w*|ERROR|WARNING)\b"),
    re.compile(r"\b\d{5}\b"),
    # Alphanumeric SQLSTATE-style codes such as 42P01 or HY000.
    re.compile(r"\b(?=[0-9A-Z]{0,4}\d)[0-9A-Z]{5}\b"),
    re.compile(r"\b\w+\.\w+\b"),
    re.compile(r"\b[a-z0-9]+_[a-z0-9_]+\b", re.I),
    re.compile(r"\[connection\]"),
)


@dataclass(frozen=True)
class ClassifiedError:
    """An error reduced to a category plus its identifier-free text."""

    category: ErrorCategory
    cleaned_message: str


def _extract(error: object) -> tuple[str, str | None]:
    """Return ``(message, code)`` from whatever shape ``error`` has."""
    if error is None:
        return "", None
    if isinstance(error, str):
        return error, None
    if isinstance(error, Mapping):
        message = error.get("message") or error.get("details") or error.get("hint") or ""
        code = error.get("code")
        return str(message), str(code) if code else None

    # DBAPI errors wrapped by SQLAlchemy keep the driver exception on ``orig``.
    original = getattr(error, "orig", None)
    if original is not None and original is not error:
        message, code = _extract(original)
        if message or code:
            return message, code

    code = (
        getattr(error, "pgcode", None)
        or getattr(error, "sqlstate", None)
        or getattr(error, "code", None)
    )
    message = getattr(error, "message", None)
    if not isinstance(message, str) or not message:
        message = str(error) if isinstance(error, BaseException) else ""
    if not message:
        details = getattr(error, "details", None)
        message = details if isinstance(details, str) else ""
    return message, str(code) if code else None


def _strip_identifiers(message: str) -> str:
    cleaned = message
    for pattern, replacement in _STRIP_PATTERNS:
        cleaned = pattern.sub(replacement, cleaned)
    return re.sub(r"\s+", " ", cleaned).strip()


def _category_for(message: str, code: str | None) -> ErrorCategory:
    if code:
        for pattern, category in _CODE_CATEGORIES:
            if pattern.match(code.strip()):
                return category
    lowered = message.lower()
    for pattern, category in _MESSAGE_CATEGORIES:
        if pattern.search(lowered):
            return category
    return ErrorCategory.UNCLASSIFIED


def classify(error: object) -> ClassifiedError:
    """Inspect ``error`` once and reduce it to a :class:`ClassifiedError`."""
    message, code = _extract(error)
    return ClassifiedError(
        category=_category_for(message, code),
        cleaned_message=_strip_identifiers(message),
    )


def contains_technical_details(message: str) -> bool:
    """Return True if ``message`` still mentions infrastructure vocabulary."""
    return any(pattern.search(message) for pattern in _TECHNICAL_PATTERNS)


def sanitize(error: object) -> str:
    """Return a short message that is safe to show to the end user."""
    classified = classify(error)
    if classified.category is not ErrorCategory.UNCLASSIFIED:
        return CATEGORY_MESSAGES[classified.category]

    cleaned = classified.cleaned_message
    if not cleaned:
        return GENERIC_MESSAGE
    if contains_technical_details(cleaned):
        return TECHNICAL_FALLBACK_MESSAGE
    if len(cleaned) < MIN_PASSTHROUGH_LENGTH:
        return GENERIC_MESSAGE
    return cleaned


def public_message(failure: BackendFailure) -> str:
    """Return the client-facing text for a backend failure.

    A fixed message supplied by the handler wins; otherwise the cause (or the
    context label when there is none) goes through :func:`sanitize`.
    """
    if failure.public_message:
        return failure.public_message
    return sanitize(failure.cause if failure.cause is not None else failure.context)


def log_error(context: str, error: object, *, production: bool) -> None:
    """Record an error for operators only.

    Outside production the full error (with traceback when available) is
    logged; in production only the context label is written.
    """
    if production:
        logger.error("[%s] An error occurred", context)
        return
    exc_info = error if isinstance(error, BaseException) else None
    logger.error("[%s] Error: %r", context, error, exc_info=exc_info)
