"""
Configuration Tests

Tests settings validation, derived values and the startup configuration
report.
"""

import pytest
from pydantic import ValidationError

from webgate.app.config import RouteTable, Settings, validate_configuration

from conftest import TEST_ANON_KEY, TEST_SUPABASE_URL


def make_settings(**overrides):
    values = {"SUPABASE_URL": TEST_SUPABASE_URL, "SUPABASE_ANON_KEY": TEST_ANON_KEY}
    values.update(overrides)
    return Settings(**values)


class TestSettings:

    def test_defaults(self, test_settings):
        assert test_settings.LOG_LEVEL == "INFO"
        assert test_settings.GATE_DEBUG_TIMING is False
        assert test_settings.GATE_REQUIRE_SESSION_COOKIE is False
        assert test_settings.PROVIDER_TIMEOUT_SECONDS == 5.0

    def test_session_cookie_name_from_project_ref(self, test_settings):
        assert test_settings.project_ref == "abcd1234"
        assert test_settings.session_cookie_name == "sb-abcd1234-auth-token"

    def test_session_cookie_name_override(self):
        settings = make_settings(SESSION_COOKIE_NAME="app-session")

        assert settings.session_cookie_name == "app-session"

    def test_supabase_url_trailing_slash_is_trimmed(self):
        settings = make_settings(SUPABASE_URL="https://abcd1234.supabase.co/")

        assert settings.supabase_url_str == "https://abcd1234.supabase.co"

    @pytest.mark.parametrize("value", ["abcd1234.supabase.co", "ftp://abcd1234.supabase.co", "https://"])
    def test_invalid_supabase_url(self, value):
        with pytest.raises(ValidationError):
            make_settings(SUPABASE_URL=value)

    def test_log_level_is_normalized(self):
        assert make_settings(LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            make_settings(LOG_LEVEL="verbose")

    @pytest.mark.parametrize("value", ["https://evil.com", "//evil.com", "/\\evil.com", "dashboard"])
    def test_default_login_redirect_must_be_local(self, value):
        with pytest.raises(ValidationError):
            make_settings(DEFAULT_LOGIN_REDIRECT=value)

    def test_extra_routes_extend_route_table(self):
        settings = make_settings(
            EXTRA_PUBLIC_ROUTES="/changelog, /status",
            EXTRA_PROTECTED_ROUTES="/billing",
            EXTRA_PROTECTED_API_ROUTES="/api/billing",
            DEFAULT_LOGIN_REDIRECT="/tasks",
        )

        table = settings.route_table

        assert "/changelog" in table.public_routes
        assert "/status" in table.public_routes
        assert "/billing" in table.protected_routes
        assert "/api/billing" in table.protected_api_routes
        assert "/dashboard" in table.protected_routes
        assert table.default_login_redirect == "/tasks"

    def test_invalid_extra_route(self):
        with pytest.raises(ValidationError):
            make_settings(EXTRA_PROTECTED_ROUTES="/billing,reports")


class TestRouteTable:

    def test_is_immutable(self):
        table = RouteTable()

        with pytest.raises(ValidationError):
            table.login_path = "/signin"

    def test_model_copy_overrides(self):
        table = RouteTable().model_copy(update={"protected_routes": ("/reports",)})

        assert table.protected_routes == ("/reports",)
        assert RouteTable().protected_routes != ("/reports",)

    def test_paths_must_be_absolute(self):
        with pytest.raises(ValidationError):
            RouteTable(login_path="auth/login")


class TestValidateConfiguration:

    def test_default_configuration_is_valid(self, test_settings):
        report = validate_configuration(test_settings)

        assert report["valid"] is True
        assert report["errors"] == []
        assert report["session_cookie_name"] == "sb-abcd1234-auth-token"
        assert report["default_login_redirect"] == "/dashboard"

    def test_warns_about_insecure_cookies_over_https(self, test_settings):
        report = validate_configuration(test_settings)

        assert any("SESSION_COOKIE_SECURE" in w for w in report["warnings"])

    def test_secure_cookies_silence_warning(self):
        report = validate_configuration(make_settings(SESSION_COOKIE_SECURE=True))

        assert not any("SESSION_COOKIE_SECURE" in w for w in report["warnings"])

    def test_warns_about_public_protected_overlap(self):
        report = validate_configuration(make_settings(EXTRA_PUBLIC_ROUTES="/dashboard"))

        assert report["valid"] is True
        assert any("/dashboard" in w for w in report["warnings"])

    def test_warns_about_localhost(self):
        report = validate_configuration(make_settings(SUPABASE_URL="http://localhost:54321"))

        assert any("localhost" in w for w in report["warnings"])
