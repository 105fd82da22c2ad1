# tests/v1/test_gate.py
"""Tests for the dashboard authorization gate and edge middleware."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from fastapi import status
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from portfolio_admin.api.middleware import SECURITY_HEADERS, matches_prefix
from portfolio_admin.core.errors import BackendFailure
from portfolio_admin.models import Admin
from portfolio_admin.repositories.admin_repo import AdminRepository
from portfolio_admin.services.session_tokens import AdminIdentity, SessionTokenService


def _cookie(token: str) -> dict[str, str]:
    return {"Cookie": f"admin_session={token}"}


class TestProtectedPages:
    """Redirect rules for dashboard paths."""

    def test_missing_cookie_redirects_to_login(self, client: TestClient) -> None:
        response = client.get("/dashboard", follow_redirects=False)
        assert response.status_code == status.HTTP_307_TEMPORARY_REDIRECT
        assert response.headers["location"] == "/login?next=%2Fdashboard"

    def test_return_target_keeps_query_string(self, client: TestClient) -> None:
        response = client.get("/dashboard/projects?tab=2", follow_redirects=False)
        assert response.headers["location"] == "/login?next=%2Fdashboard%2Fprojects%3Ftab%3D2"

    def test_invalid_token_redirects_to_login(self, client: TestClient) -> None:
        response = client.get("/dashboard/media", headers=_cookie("tampered.token.value"), follow_redirects=False)
        assert response.status_code == status.HTTP_307_TEMPORARY_REDIRECT
        assert response.headers["location"] == "/login?next=%2Fdashboard%2Fmedia"

    def test_expired_token_redirects_to_login(
        self, client: TestClient, tokens: SessionTokenService, admin_identity: AdminIdentity
    ) -> None:
        token = tokens.issue(admin_identity, now=datetime.now(UTC) - timedelta(days=8))
        response = client.get("/dashboard", headers=_cookie(token), follow_redirects=False)
        assert response.headers["location"] == "/login?next=%2Fdashboard"

    def test_valid_session_reaches_page(
        self, client: TestClient, tokens: SessionTokenService, admin_identity: AdminIdentity
    ) -> None:
        response = client.get("/dashboard/projects", headers=_cookie(tokens.issue(admin_identity)))
        assert response.status_code == status.HTTP_200_OK
        assert "Welcome, Ada Lovelace." in response.text
        assert 'data-section="projects"' in response.text

    def test_deleted_principal_gets_no_access(
        self,
        client: TestClient,
        tokens: SessionTokenService,
        admin_identity: AdminIdentity,
        admin: Admin,
        db_session: Session,
    ) -> None:
        token = tokens.issue(admin_identity)
        db_session.delete(admin)
        db_session.commit()

        response = client.get("/dashboard/projects?tab=2", headers=_cookie(token), follow_redirects=False)
        assert response.status_code == status.HTTP_307_TEMPORARY_REDIRECT
        assert response.headers["location"] == "/login?next=%2Fdashboard%2Fprojects&error=no_access"

    def test_changed_email_gets_no_access(
        self,
        client: TestClient,
        tokens: SessionTokenService,
        admin_identity: AdminIdentity,
        admin: Admin,
        db_session: Session,
    ) -> None:
        token = tokens.issue(admin_identity)
        AdminRepository(db_session).update_profile(
            admin, first_name="Ada", last_name="Lovelace", email="other@example.com"
        )

        response = client.get("/dashboard", headers=_cookie(token), follow_redirects=False)
        assert response.headers["location"] == "/login?next=%2Fdashboard&error=no_access"

    def test_backend_failure_during_recheck_denies_access(
        self,
        client: TestClient,
        tokens: SessionTokenService,
        admin_identity: AdminIdentity,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def broken(self, admin_id: str, email: str):
            raise BackendFailure("AdminRepository.find_matching", Exception("connection reset"))

        monkeypatch.setattr(AdminRepository, "find_matching", broken)
        response = client.get("/dashboard", headers=_cookie(tokens.issue(admin_identity)), follow_redirects=False)
        assert response.headers["location"] == "/login?next=%2Fdashboard&error=no_access"

    def test_prefix_matching_is_segment_aware(self, client: TestClient) -> None:
        assert matches_prefix("/dashboard", "/dashboard")
        assert matches_prefix("/dashboard/a/b", "/dashboard/")
        assert not matches_prefix("/dashboards", "/dashboard")
        assert client.get("/dashboards", follow_redirects=False).status_code == status.HTTP_404_NOT_FOUND


class TestLoginPage:
    def test_anonymous_visitor_sees_form(self, client: TestClient) -> None:
        response = client.get("/login?next=/dashboard")
        assert response.status_code == status.HTTP_200_OK
        assert 'data-next="/dashboard"' in response.text
        assert "no longer grants access" not in response.text

    def test_no_access_notice_is_shown(self, client: TestClient) -> None:
        response = client.get("/login?next=/dashboard&error=no_access")
        assert "no longer grants access" in response.text

    def test_return_target_is_escaped(self, client: TestClient) -> None:
        response = client.get('/login', params={"next": '"><script>alert(1)</script>'})
        assert "<script>" not in response.text

    def test_logged_in_visitor_is_sent_to_dashboard(
        self, client: TestClient, tokens: SessionTokenService, admin_identity: AdminIdentity
    ) -> None:
        response = client.get("/login", headers=_cookie(tokens.issue(admin_identity)), follow_redirects=False)
        assert response.status_code == status.HTTP_307_TEMPORARY_REDIRECT
        assert response.headers["location"] == "/dashboard"

    def test_api_routes_are_not_gated(self, client: TestClient) -> None:
        response = client.get("/api/auth/check", follow_redirects=False)
        assert response.status_code == status.HTTP_200_OK


class TestEdgeHeaders:
    @pytest.mark.parametrize("path", ["/health", "/dashboard", "/api/auth/check", "/does-not-exist"])
    def test_security_headers_on_every_response(self, client: TestClient, path: str) -> None:
        response = client.get(path, follow_redirects=False)
        for name, value in SECURITY_HEADERS.items():
            assert response.headers[name] == value

    def test_request_id_is_echoed_or_generated(self, client: TestClient) -> None:
        assert client.get("/health", headers={"X-Request-Id": "abc-123"}).headers["X-Request-Id"] == "abc-123"
        assert client.get("/health").headers["X-Request-Id"]

    def test_health(self, client: TestClient) -> None:
        assert client.get("/health").json() == {"status": "ok"}

    def test_not_found_uses_error_shape(self, client: TestClient) -> None:
        response = client.get("/does-not-exist")
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json() == {"error": "Not Found"}
