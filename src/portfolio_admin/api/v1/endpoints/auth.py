"""Authentication endpoints for the admin dashboard."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response, status

from portfolio_admin.api.cookies import clear_session_cookie, set_session_cookie
from portfolio_admin.api.dependencies import (
    CsrfGuardDep,
    CurrentSessionDep,
    SessionDep,
    SettingsDep,
    TokensDep,
    rate_limit,
)
from portfolio_admin.core.errors import (
    BackendFailure,
    Forbidden,
    InvalidCredentials,
    ValidationError,
)
from portfolio_admin.core.security import hash_password, verify_password
from portfolio_admin.repositories.admin_repo import AdminRepository
from portfolio_admin.schemas.auth import (
    AdminOut,
    CsrfTokenResponse,
    LoginRequest,
    LoginResponse,
    PasswordChangeRequest,
    ProfileUpdateRequest,
    ProfileUpdateResponse,
    SessionCheckResponse,
    SuccessResponse,
)
from portfolio_admin.services.rate_limit import RateLimitDecision
from portfolio_admin.services.session_tokens import AdminIdentity
from portfolio_admin.services.validation import validate_email

router = APIRouter(prefix="/auth", tags=["authentication"])

MIN_NEW_PASSWORD_LENGTH = 6

StrictLimitDep = Annotated[RateLimitDecision, Depends(rate_limit("strict"))]


@router.post(
    "/login",
    summary="Sign in with email and password",
    status_code=status.HTTP_200_OK,
    response_model=LoginResponse,
)
def login(
    payload: LoginRequest,
    response: Response,
    db: SessionDep,
    tokens: TokensDep,
    settings: SettingsDep,
) -> LoginResponse:
    """Verify credentials and set the session cookie."""
    if not payload.email or not payload.password:
        raise ValidationError("Email and password are required")

    try:
        admin = AdminRepository(db).get_by_email(payload.email)
    except BackendFailure as failure:
        raise failure.with_public_message(
            "Unable to verify credentials. Please try again."
        ) from failure.cause

    if admin is None:
        raise InvalidCredentials("Invalid email or password. Admin not found.")
    if not verify_password(payload.password, admin.password):
        raise InvalidCredentials("Invalid email or password")

    identity = AdminIdentity(
        principal_id=admin.id,
        email=admin.email,
        first_name=admin.first_name,
        last_name=admin.last_name,
    )
    set_session_cookie(response, tokens.issue(identity), settings, tokens.max_age_seconds)
    return LoginResponse(admin=AdminOut.model_validate(admin))


@router.post("/logout", summary="Clear the session cookie", response_model=SuccessResponse)
def logout(response: Response, settings: SettingsDep) -> SuccessResponse:
    """Log out by expiring the session cookie on the client."""
    clear_session_cookie(response, settings)
    return SuccessResponse(message="Logged out successfully")


@router.get("/check", summary="Report whether a valid session exists", response_model=SessionCheckResponse)
def check_session(request: Request, tokens: TokensDep, settings: SettingsDep) -> SessionCheckResponse:
    """Never fails: any verification problem simply reports ``False``."""
    token = request.cookies.get(settings.session_cookie_name)
    return SessionCheckResponse(authenticated=tokens.is_valid(token))


@router.get("/csrf", summary="Issue the CSRF token for this browser", response_model=CsrfTokenResponse)
def csrf_token(request: Request, response: Response, guard: CsrfGuardDep) -> CsrfTokenResponse:
    """Return the caller's CSRF token, creating the cookie on first use."""
    return CsrfTokenResponse(csrf_token=guard.get_or_create_token(request, response))


@router.post("/password/change", summary="Change the admin password", response_model=SuccessResponse)
def change_password(
    payload: PasswordChangeRequest,
    session: CurrentSessionDep,
    _limit: StrictLimitDep,
    db: SessionDep,
) -> SuccessResponse:
    """Replace the password after checking the current one.

    Existing sessions are not revoked; they stay valid until they expire.
    """
    old_password = payload.old_password
    new_password = payload.new_password
    if not old_password or not new_password or not payload.confirm_password:
        raise ValidationError("All password fields are required.")
    if len(new_password) < MIN_NEW_PASSWORD_LENGTH:
        raise ValidationError(
            f"New password must be at least {MIN_NEW_PASSWORD_LENGTH} characters long.",
            "newPassword",
        )
    if new_password != payload.confirm_password:
        raise ValidationError("New password and confirmation do not match.", "confirmPassword")
    if old_password == new_password:
        raise ValidationError(
            "New password must be different from the current password.", "newPassword"
        )

    repo = AdminRepository(db)
    try:
        admin = repo.get_by_id(session.principal_id)
    except BackendFailure as failure:
        raise failure.with_public_message(
            "Unable to verify your account. Please try again."
        ) from failure.cause
    if admin is None:
        raise BackendFailure(
            "PasswordChange.get_admin",
            public_message="Unable to verify your account. Please try again.",
        )

    if not verify_password(old_password, admin.password):
        raise InvalidCredentials("Current password is incorrect.")

    try:
        repo.update_password(admin, hash_password(new_password))
    except BackendFailure as failure:
        raise failure.with_public_message(
            "Unable to update password. Please try again."
        ) from failure.cause

    return SuccessResponse(message="Password updated successfully.")


@router.post("/profile/update", summary="Update the admin profile", response_model=ProfileUpdateResponse)
def update_profile(
    payload: ProfileUpdateRequest,
    response: Response,
    session: CurrentSessionDep,
    db: SessionDep,
    tokens: TokensDep,
    settings: SettingsDep,
) -> ProfileUpdateResponse:
    """Update name and email of the signed-in admin.

    The session cookie is re-issued with the new claims so the dashboard
    gate keeps accepting it after an email change.
    """
    if payload.id != session.principal_id:
        raise Forbidden("You can only update your own profile.")
    if not payload.first_name or not payload.last_name or not payload.email:
        raise ValidationError("First name, last name, and email are required.")
    email = validate_email(payload.email)

    repo = AdminRepository(db)
    try:
        admin = repo.get_by_id(session.principal_id)
        if admin is None:
            raise BackendFailure("ProfileUpdate.get_admin")
        admin = repo.update_profile(
            admin,
            first_name=payload.first_name.strip(),
            last_name=payload.last_name.strip(),
            email=email,
        )
    except BackendFailure as failure:
        raise failure.with_public_message(
            "Unable to update profile. Please try again."
        ) from failure.cause

    identity = AdminIdentity(
        principal_id=admin.id,
        email=admin.email,
        first_name=admin.first_name,
        last_name=admin.last_name,
    )
    set_session_cookie(response, tokens.issue(identity), settings, tokens.max_age_seconds)
    return ProfileUpdateResponse(admin=AdminOut.model_validate(admin))
