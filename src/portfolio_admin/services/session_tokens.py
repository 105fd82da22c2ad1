"""Signed, time-limited session tokens for the admin principal.

Tokens are HS256 JWTs. Nothing is stored server-side: a token is valid
exactly when its signature checks out and its expiry is in the future.
There is no refresh or rotation; a token is accepted unchanged until it
expires or the browser drops the cookie.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from portfolio_admin.core.errors import InvalidSession
from portfolio_admin.core.settings import Settings

DEFAULT_SESSION_TTL = timedelta(days=7)

_REQUIRED_CLAIMS = ("sub", "email", "iat", "exp")


@dataclass(frozen=True)
class AdminIdentity:
    """Identity claims carried by a session token."""

    principal_id: str
    email: str
    first_name: str
    last_name: str


@dataclass(frozen=True)
class SessionClaims:
    """Verified contents of a session token."""

    identity: AdminIdentity
    issued_at: datetime
    expires_at: datetime

    @property
    def principal_id(self) -> str:
        return self.identity.principal_id

    @property
    def email(self) -> str:
        return self.identity.email


class SessionTokenService:
    """Issue and verify admin session tokens.

    Args:
        secret: Symmetric signing secret. Must be non-empty.
        algorithm: JWS algorithm used for signing and verification.
        ttl: Validity window applied at issuance.
    """

    def __init__(
        self,
        secret: str,
        *,
        algorithm: str = "HS256",
        ttl: timedelta = DEFAULT_SESSION_TTL,
    ) -> None:
        if not secret:
            raise ValueError("Session token secret must not be empty")
        if ttl <= timedelta(0):
            raise ValueError("Session token lifetime must be positive")
        self._secret = secret
        self._algorithm = algorithm
        self.ttl = ttl

    @classmethod
    def from_settings(cls, settings: Settings) -> "SessionTokenService":
        """Build the service from application settings."""
        return cls(
            settings.jwt_secret or "",
            algorithm=settings.jwt_algorithm,
            ttl=timedelta(seconds=settings.session_ttl_seconds),
        )

    @property
    def max_age_seconds(self) -> int:
        """Cookie ``Max-Age`` matching the token validity window."""
        return int(self.ttl.total_seconds())

    def issue(self, identity: AdminIdentity, *, now: datetime | None = None) -> str:
        """Return a signed token for ``identity``, valid from ``now`` for ``ttl``."""
        issued_at = (now or datetime.now(UTC)).replace(microsecond=0)
        expires_at = issued_at + self.ttl
        to_encode: dict[str, object] = {
            "sub": identity.principal_id,
            "email": identity.email,
            "firstName": identity.first_name,
            "lastName": identity.last_name,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        encoded_jwt: str = jwt.encode(to_encode, self._secret, algorithm=self._algorithm)
        return encoded_jwt

    def verify(self, token: str | None) -> SessionClaims:
        """Validate signature and expiry and return the token's claims.

        Raises:
            InvalidSession: If the token is missing, malformed, tampered with,
                signed with another key or algorithm, or expired.
        """
        if not token:
            raise InvalidSession()
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except JWTError as err:
            raise InvalidSession() from err

        if any(not payload.get(claim) for claim in _REQUIRED_CLAIMS):
            raise InvalidSession()
        try:
            issued_at = datetime.fromtimestamp(int(payload["iat"]), UTC)
            expires_at = datetime.fromtimestamp(int(payload["exp"]), UTC)
        except (TypeError, ValueError, OverflowError) as err:
            raise InvalidSession() from err

        identity = AdminIdentity(
            principal_id=str(payload["sub"]),
            email=str(payload["email"]),
            first_name=str(payload.get("firstName") or ""),
            last_name=str(payload.get("lastName") or ""),
        )
        return SessionClaims(identity=identity, issued_at=issued_at, expires_at=expires_at)

    def is_valid(self, token: str | None) -> bool:
        """Return True if ``token`` verifies; never raises."""
        try:
            self.verify(token)
        except InvalidSession:
            return False
        return True
