"""Reference endpoints showing how a secured handler is wired."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends

from portfolio_admin.api.dependencies import secure_endpoint
from portfolio_admin.schemas.example import ExampleData, ExampleRequest, ExampleResponse
from portfolio_admin.services.session_tokens import SessionClaims
from portfolio_admin.services.validation import (
    validate_email,
    validate_password,
    validate_text,
)

router = APIRouter(prefix="/example", tags=["example"])

PublicGuard = Annotated[
    SessionClaims | None,
    Depends(secure_endpoint(require_csrf=False, allowed_methods=("GET",))),
]
AdminWriteGuard = Annotated[
    SessionClaims | None,
    Depends(secure_endpoint(require_auth=True, policy="strict", allowed_methods=("POST",))),
]


def _timestamp() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@router.get("", response_model=ExampleResponse, response_model_exclude_none=True)
def read_example(_guard: PublicGuard) -> ExampleResponse:
    return ExampleResponse(message="This is a secure API endpoint", timestamp=_timestamp())


@router.post("", response_model=ExampleResponse, response_model_exclude_none=True)
def submit_example(payload: ExampleRequest, _session: AdminWriteGuard) -> ExampleResponse:
    """Validate a sample submission.

    Requires a session, a CSRF token and stays under the strict policy.
    """
    email = validate_email(payload.email)
    validate_password(payload.password)
    name = validate_text(payload.name, min_length=2, max_length=100, required=True, field="name")
    return ExampleResponse(
        message="Request processed successfully",
        data=ExampleData(email=email, name=name),
    )
