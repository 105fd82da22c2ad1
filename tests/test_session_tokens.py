# tests/test_session_tokens.py
"""Tests for session token issuance and verification."""

from datetime import UTC, datetime, timedelta

import pytest
from jose import jwt

from portfolio_admin.core.errors import InvalidSession
from portfolio_admin.services.session_tokens import AdminIdentity, SessionTokenService

SECRET = "unit-test-secret-with-plenty-of-entropy-0123456789"
IDENTITY = AdminIdentity(
    principal_id="5f0c6a0e-1111-4222-8333-944445555666",
    email="ada@example.com",
    first_name="Ada",
    last_name="Lovelace",
)


@pytest.fixture()
def service() -> SessionTokenService:
    return SessionTokenService(SECRET)


class TestIssueAndVerify:
    """Round-trip behaviour of valid tokens."""

    def test_verify_returns_issued_identity(self, service: SessionTokenService) -> None:
        claims = service.verify(service.issue(IDENTITY))
        assert claims.identity == IDENTITY
        assert claims.principal_id == IDENTITY.principal_id
        assert claims.email == IDENTITY.email

    def test_expiry_is_seven_days_after_issue(self, service: SessionTokenService) -> None:
        now = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
        token = service.issue(IDENTITY, now=now)
        payload = jwt.get_unverified_claims(token)
        assert payload["iat"] == int(now.timestamp())
        assert payload["exp"] == int((now + timedelta(days=7)).timestamp())
        assert payload["firstName"] == "Ada"
        assert payload["lastName"] == "Lovelace"

    def test_token_close_to_expiry_is_still_accepted(self, service: SessionTokenService) -> None:
        issued = datetime.now(UTC) - timedelta(days=7) + timedelta(minutes=5)
        claims = service.verify(service.issue(IDENTITY, now=issued))
        assert claims.expires_at > datetime.now(UTC)

    def test_max_age_matches_validity_window(self, service: SessionTokenService) -> None:
        assert service.max_age_seconds == 604800

    def test_from_settings_uses_configured_secret(self, test_settings) -> None:
        service = SessionTokenService.from_settings(test_settings)
        token = service.issue(IDENTITY)
        assert jwt.decode(token, test_settings.jwt_secret, algorithms=["HS256"])["sub"] == IDENTITY.principal_id


class TestRejectedTokens:
    """Every failure mode surfaces as InvalidSession."""

    def test_tampered_signature(self, service: SessionTokenService) -> None:
        token = service.issue(IDENTITY)
        head, body, signature = token.split(".")
        flipped = ("A" if signature[0] != "A" else "B") + signature[1:]
        with pytest.raises(InvalidSession):
            service.verify(f"{head}.{body}.{flipped}")

    def test_tampered_payload(self, service: SessionTokenService) -> None:
        token = service.issue(IDENTITY)
        forged = jwt.encode({"sub": "someone-else", "email": "x@example.com"}, "other", algorithm="HS256")
        head, _, signature = token.split(".")
        _, forged_body, _ = forged.split(".")
        with pytest.raises(InvalidSession):
            service.verify(f"{head}.{forged_body}.{signature}")

    def test_expired_token(self, service: SessionTokenService) -> None:
        issued = datetime.now(UTC) - timedelta(days=7, seconds=5)
        with pytest.raises(InvalidSession):
            service.verify(service.issue(IDENTITY, now=issued))

    @pytest.mark.parametrize("token", ["", "not-a-token", "a.b.c", "a.b", "....."])
    def test_malformed_token(self, service: SessionTokenService, token: str) -> None:
        with pytest.raises(InvalidSession):
            service.verify(token)

    def test_missing_token(self, service: SessionTokenService) -> None:
        with pytest.raises(InvalidSession):
            service.verify(None)

    def test_wrong_secret(self, service: SessionTokenService) -> None:
        other = SessionTokenService("a-completely-different-secret-value-0123456789")
        with pytest.raises(InvalidSession):
            service.verify(other.issue(IDENTITY))

    def test_missing_required_claims(self, service: SessionTokenService) -> None:
        now = int(datetime.now(UTC).timestamp())
        token = jwt.encode({"sub": IDENTITY.principal_id, "iat": now, "exp": now + 60}, SECRET, algorithm="HS256")
        with pytest.raises(InvalidSession):
            service.verify(token)

    def test_unsigned_token_is_rejected(self, service: SessionTokenService) -> None:
        valid = service.issue(IDENTITY)
        _, body, _ = valid.split(".")
        unsigned_header = "eyJhbGciOiJub25lIiwidHlwIjoiSldUIn0"  # {"alg":"none","typ":"JWT"}
        with pytest.raises(InvalidSession):
            service.verify(f"{unsigned_header}.{body}.")

    def test_is_valid_never_raises(self, service: SessionTokenService) -> None:
        assert service.is_valid(service.issue(IDENTITY)) is True
        assert service.is_valid("garbage") is False
        assert service.is_valid(None) is False


class TestConstruction:
    def test_empty_secret_is_refused(self) -> None:
        with pytest.raises(ValueError):
            SessionTokenService("")

    def test_non_positive_ttl_is_refused(self) -> None:
        with pytest.raises(ValueError):
            SessionTokenService(SECRET, ttl=timedelta(0))
