"""Authentication-related Pydantic schemas.

Request fields are optional on purpose: missing values are reported by the
handlers with specific 400 messages instead of generic schema errors.
"""

from pydantic import BaseModel, ConfigDict, Field


class LoginRequest(BaseModel):
    """Credentials submitted to the login endpoint."""

    email: str | None = None
    password: str | None = None


class AdminOut(BaseModel):
    """Public view of the admin principal."""

    id: str
    email: str
    first_name: str
    last_name: str

    model_config = ConfigDict(from_attributes=True)


class LoginResponse(BaseModel):
    """Response returned after a successful login."""

    success: bool = True
    admin: AdminOut


class SuccessResponse(BaseModel):
    """Generic acknowledgement."""

    success: bool = True
    message: str | None = None


class PasswordChangeRequest(BaseModel):
    """Schema for changing the admin password."""

    old_password: str | None = Field(default=None, alias="oldPassword")
    new_password: str | None = Field(default=None, alias="newPassword")
    confirm_password: str | None = Field(default=None, alias="confirmPassword")

    model_config = ConfigDict(populate_by_name=True)


class ProfileUpdateRequest(BaseModel):
    """Schema for updating the admin profile."""

    id: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None


class ProfileUpdateResponse(BaseModel):
    """Response returned after a profile update."""

    success: bool = True
    admin: AdminOut


class SessionCheckResponse(BaseModel):
    """Whether the caller holds a valid session."""

    authenticated: bool


class CsrfTokenResponse(BaseModel):
    """CSRF token bound to the caller's browser."""

    csrf_token: str = Field(serialization_alias="csrfToken")
