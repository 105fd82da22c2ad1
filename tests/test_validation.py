# tests/test_validation.py
"""Tests for input validation and sanitization helpers."""

import pytest

from portfolio_admin.core.errors import ValidationError
from portfolio_admin.core.settings import Settings
from portfolio_admin.services.validation import (
    sanitize_object,
    sanitize_string,
    validate_email,
    validate_password,
    validate_text,
    validate_url,
    validate_uuid,
)


class TestSanitizeString:
    def test_strips_markup_and_handlers(self) -> None:
        assert sanitize_string("  <b onclick=alert(1)>hi</b> ") == "b alert(1)hi/b"

    def test_removes_javascript_scheme(self) -> None:
        assert sanitize_string("JavaScript:alert(1)") == "alert(1)"

    def test_non_strings_become_empty(self) -> None:
        assert sanitize_string(None) == ""
        assert sanitize_string(42) == ""

    def test_caps_length(self) -> None:
        assert len(sanitize_string("x" * 20_000)) == 10_000


class TestEmail:
    def test_normalizes_case_and_whitespace(self) -> None:
        assert validate_email("  Ada@Example.COM ") == "ada@example.com"

    @pytest.mark.parametrize("value", [None, "", "no-at-sign", "a@b", "a b@c.com"])
    def test_rejects_bad_addresses(self, value: object) -> None:
        with pytest.raises(ValidationError) as excinfo:
            validate_email(value)
        assert excinfo.value.field == "email"

    def test_rejects_overlong_address(self) -> None:
        with pytest.raises(ValidationError, match="too long"):
            validate_email("a" * 250 + "@example.com")


class TestPassword:
    def test_accepts_strong_password(self) -> None:
        validate_password("Str0ng!Pass")

    @pytest.mark.parametrize(
        ("value", "message"),
        [
            ("", "required"),
            ("Sh0rt!", "at least 8"),
            ("lowercase1!", "uppercase"),
            ("UPPERCASE1!", "lowercase"),
            ("NoDigits!!", "number"),
            ("NoSpecial123", "special"),
            ("Aa1!" * 40, "too long"),
        ],
    )
    def test_rejects_weak_passwords(self, value: str, message: str) -> None:
        with pytest.raises(ValidationError, match=message) as excinfo:
            validate_password(value)
        assert excinfo.value.field == "password"


class TestUrl:
    def test_accepts_http_outside_production(self) -> None:
        assert validate_url("http://example.com/a") == "http://example.com/a"

    def test_requires_https_in_production(self) -> None:
        prod = Settings(ENVIRONMENT="production", JWT_SECRET="p" * 40, DATABASE_URL="sqlite://")
        with pytest.raises(ValidationError, match="HTTPS"):
            validate_url("http://example.com", https_only=prod.is_production)
        assert validate_url("https://example.com", https_only=prod.is_production) == "https://example.com"

    def test_domain_allow_list(self) -> None:
        assert validate_url("https://cdn.example.com/x.png", ["example.com"])
        with pytest.raises(ValidationError, match="not allowed"):
            validate_url("https://evil.test/x.png", ["example.com"])

    @pytest.mark.parametrize("value", ["", "ftp://example.com", "not a url", "https://"])
    def test_rejects_invalid(self, value: str) -> None:
        with pytest.raises(ValidationError):
            validate_url(value)


class TestText:
    def test_required(self) -> None:
        with pytest.raises(ValidationError) as excinfo:
            validate_text("   ", required=True, field="name")
        assert excinfo.value.field == "name"

    def test_optional_empty_is_allowed(self) -> None:
        assert validate_text(None) == ""

    def test_bounds(self) -> None:
        with pytest.raises(ValidationError, match="at least 2"):
            validate_text("a", min_length=2)
        with pytest.raises(ValidationError, match="no more than 3"):
            validate_text("abcd", max_length=3)
        assert validate_text(" <ok> ", max_length=3) == "ok"


class TestUuidAndObjects:
    def test_uuid(self) -> None:
        value = "5F0C6A0E-1111-4222-8333-944445555666"
        assert validate_uuid(value) == value.lower()
        with pytest.raises(ValidationError):
            validate_uuid("not-a-uuid")
        with pytest.raises(ValidationError):
            validate_uuid(None)

    def test_sanitize_object_recurses(self) -> None:
        data = {"title": "<i>Hi</i>", "meta": {"note": " javascript:x "}, "tags": ["<a>", 3], "n": 1}
        assert sanitize_object(data) == {
            "title": "iHi/i",
            "meta": {"note": "x"},
            "tags": ["a", 3],
            "n": 1,
        }
