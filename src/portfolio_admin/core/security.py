"""Password hashing and constant-time comparison helpers."""

from __future__ import annotations

import hmac

from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    """Return a salted bcrypt hash for ``password``."""
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    """Return True if ``password`` matches ``password_hash``.

    Malformed or empty hashes verify as False instead of raising.
    """
    if not password_hash:
        return False
    try:
        return pwd_context.verify(password, password_hash)
    except (ValueError, TypeError):
        return False


def constant_time_equal(left: str, right: str) -> bool:
    """Compare two strings without leaking the mismatch position.

    Length mismatches return False immediately; equal-length inputs are
    compared in time independent of their content.
    """
    if len(left) != len(right):
        return False
    return hmac.compare_digest(left.encode("utf-8"), right.encode("utf-8"))
