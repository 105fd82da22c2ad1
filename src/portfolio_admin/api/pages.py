"""Minimal server-rendered pages guarded by the authorization gate."""

from __future__ import annotations

from html import escape

from fastapi import APIRouter, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from portfolio_admin.services.session_tokens import SessionClaims

router = APIRouter(tags=["pages"], include_in_schema=False)

_NOTICES = {
    "no_access": "Your session no longer grants access. Please sign in again.",
}

_PAGE = """<!doctype html>
<html lang="en">
<head><meta charset="utf-8"><title>{title}</title></head>
<body>
{body}
</body>
</html>
"""


@router.get("/login", response_class=HTMLResponse)
async def login_page(
    next_target: str | None = Query(default=None, alias="next"),
    error: str | None = None,
) -> HTMLResponse:
    """Render the sign-in form."""
    notice = _NOTICES.get(error or "", "")
    body = (
        "<h1>Sign in</h1>"
        + (f'<p class="notice">{escape(notice)}</p>' if notice else "")
        + '<form id="login" data-endpoint="/api/auth/login" '
        + f'data-next="{escape(next_target or "", quote=True)}">'
        + '<input name="email" type="email" autocomplete="username" required>'
        + '<input name="password" type="password" autocomplete="current-password" required>'
        + '<button type="submit">Sign in</button>'
        + "</form>"
    )
    return HTMLResponse(_PAGE.format(title="Sign in", body=body))


@router.get("/dashboard", response_class=HTMLResponse)
@router.get("/dashboard/{section:path}", response_class=HTMLResponse)
async def dashboard_page(request: Request, section: str = "") -> HTMLResponse:
    """Render the dashboard shell for the signed-in admin."""
    claims: SessionClaims | None = getattr(request.state, "admin_session", None)
    if claims is None:
        return RedirectResponse("/login")  # type: ignore[return-value]
    name = f"{claims.identity.first_name} {claims.identity.last_name}".strip() or claims.email
    body = f"<h1>Dashboard</h1><p>Welcome, {escape(name)}.</p>"
    if section:
        body += f'<section data-section="{escape(section, quote=True)}"></section>'
    return HTMLResponse(_PAGE.format(title="Dashboard", body=body))
