# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Generator, Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("JWT_SECRET", "test-signing-secret-that-is-long-enough-0123456789")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from portfolio_admin.core.security import hash_password
from portfolio_admin.core.settings import Settings
from portfolio_admin.db.session import Base, build_session_factory
from portfolio_admin.main import create_app
from portfolio_admin.models import Admin
from portfolio_admin.services.rate_limit import build_rate_limiters
from portfolio_admin.services.session_tokens import AdminIdentity, SessionTokenService

TEST_DB_URL = "sqlite://"
ADMIN_EMAIL = "ada@example.com"
ADMIN_PASSWORD = "Analytical-Engine-1843"
_TEST_SETTINGS_INSTANCE = Settings()


class FakeClock:
    """Controllable replacement for ``time.time``."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> Iterator[sessionmaker[Session]]:
    yield build_session_factory(engine)

    # Ensure each test sees a clean database even if commits occurred.
    with engine.begin() as cleanup_conn:
        for table in reversed(Base.metadata.sorted_tables):
            cleanup_conn.execute(table.delete())


@pytest.fixture()
def db_session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Provide a Settings instance aligned with runtime configuration."""
    return _TEST_SETTINGS_INSTANCE


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def app(test_settings: Settings, session_factory: sessionmaker[Session], clock: FakeClock) -> FastAPI:
    return create_app(
        test_settings,
        session_factory=session_factory,
        rate_limiters=build_rate_limiters(test_settings, clock=clock),
    )


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def tokens(test_settings: Settings) -> SessionTokenService:
    return SessionTokenService.from_settings(test_settings)


@pytest.fixture()
def admin(db_session: Session) -> Admin:
    """Create and return the persisted admin principal."""
    admin = Admin(
        email=ADMIN_EMAIL,
        password=hash_password(ADMIN_PASSWORD),
        first_name="Ada",
        last_name="Lovelace",
    )
    db_session.add(admin)
    db_session.commit()
    db_session.refresh(admin)
    return admin


@pytest.fixture()
def admin_identity(admin: Admin) -> AdminIdentity:
    return AdminIdentity(
        principal_id=admin.id,
        email=admin.email,
        first_name=admin.first_name,
        last_name=admin.last_name,
    )


@pytest.fixture()
def logged_in_client(client: TestClient, admin: Admin) -> TestClient:
    """Return a client holding a session cookie for the admin."""
    response = client.post(
        "/api/auth/login",
        json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD},
    )
    assert response.status_code == 200
    return client


@pytest.fixture()
def csrf_headers(client: TestClient) -> dict[str, str]:
    """Fetch a CSRF token (setting its cookie) and return the matching header."""
    token = client.get("/api/auth/csrf").json()["csrfToken"]
    return {"X-CSRF-Token": token}
