"""Session cookie transport."""

from __future__ import annotations

from starlette.responses import Response

from portfolio_admin.core.settings import Settings


def set_session_cookie(response: Response, token: str, settings: Settings, max_age: int) -> None:
    """Attach the session token as an HTTP-only, same-site-lax cookie."""
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=max_age,
        path="/",
        secure=settings.cookie_secure,
        httponly=True,
        samesite="lax",
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    """Expire the session cookie immediately."""
    response.set_cookie(
        key=settings.session_cookie_name,
        value="",
        max_age=0,
        path="/",
        secure=settings.cookie_secure,
        httponly=True,
        samesite="lax",
    )
