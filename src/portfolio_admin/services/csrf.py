"""CSRF protection.

A random token is bound to the browser through an HTTP-only, strict
same-site cookie. State-changing requests must echo the same value in the
``X-CSRF-Token`` header or the ``csrf_token`` form field; anything else
fails closed.
"""

from __future__ import annotations

import secrets

from starlette.requests import Request
from starlette.responses import Response

from portfolio_admin.core.errors import Forbidden
from portfolio_admin.core.security import constant_time_equal
from portfolio_admin.core.settings import Settings

CSRF_TOKEN_BYTES = 32
STATE_CHANGING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
_FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


def generate_csrf_token() -> str:
    """Return 32 random bytes, hex encoded."""
    return secrets.token_hex(CSRF_TOKEN_BYTES)


class CsrfGuard:
    """Issue and validate anti-forgery tokens."""

    def __init__(self, settings: Settings) -> None:
        self.cookie_name = settings.csrf_cookie_name
        self.header_name = settings.csrf_header_name
        self.form_field = settings.csrf_form_field
        self.max_age = settings.csrf_ttl_seconds
        self.secure = settings.cookie_secure

    def stored_token(self, request: Request) -> str | None:
        """Return the token bound to this browser, if any."""
        return request.cookies.get(self.cookie_name) or None

    def get_or_create_token(self, request: Request, response: Response) -> str:
        """Return the browser's token, minting and setting the cookie on first use."""
        token = self.stored_token(request)
        if token:
            return token
        token = generate_csrf_token()
        response.set_cookie(
            key=self.cookie_name,
            value=token,
            max_age=self.max_age,
            path="/",
            secure=self.secure,
            httponly=True,
            samesite="strict",
        )
        return token

    def validate(self, request: Request, supplied: str | None) -> bool:
        """Return True only if ``supplied`` equals the stored cookie value."""
        if not supplied:
            return False
        stored = self.stored_token(request)
        if not stored:
            return False
        return constant_time_equal(supplied, stored)

    async def supplied_token(self, request: Request) -> str | None:
        """Return the token sent with the request: header first, then form field."""
        header_token = request.headers.get(self.header_name)
        if header_token:
            return header_token

        content_type = request.headers.get("content-type", "")
        if content_type.startswith(_FORM_CONTENT_TYPES):
            form = await request.form()
            form_token = form.get(self.form_field)
            if isinstance(form_token, str) and form_token:
                return form_token
        return None

    async def protect(self, request: Request) -> None:
        """Reject state-changing requests without a matching token.

        Raises:
            Forbidden: If the method changes state and the token is missing
                or does not match.
        """
        if request.method.upper() not in STATE_CHANGING_METHODS:
            return
        if not self.validate(request, await self.supplied_token(request)):
            raise Forbidden("Invalid CSRF token")
