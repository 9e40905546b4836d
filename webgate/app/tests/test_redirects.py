"""
Redirect URL Builder Tests

Tests login redirects carrying the return path, post-login resolution and
open-redirect protection.
"""

from urllib.parse import parse_qs, urlsplit

import pytest

from webgate.app.config import RouteTable
from webgate.app.gate.redirects import (
    is_safe_redirect_target,
    login_redirect_url,
    post_login_redirect_url,
)

ORIGIN = "https://app.example.com"


class TestLoginRedirect:
    """Unauthenticated requests are sent to the login page"""

    def test_carries_current_path(self):
        url = login_redirect_url(f"{ORIGIN}/dashboard")

        assert url == f"{ORIGIN}/auth/login?redirectTo=%2Fdashboard"

    def test_carries_query_string(self):
        url = login_redirect_url(f"{ORIGIN}/tasks?filter=open&page=2")

        query = parse_qs(urlsplit(url).query)
        assert query["redirectTo"] == ["/tasks?filter=open&page=2"]

    def test_public_page_has_no_redirect_param(self):
        url = login_redirect_url(f"{ORIGIN}/pricing?plan=pro")

        assert url == f"{ORIGIN}/auth/login"

    def test_drops_fragment_and_keeps_origin(self):
        url = login_redirect_url("http://localhost:3000/projects/7#board")

        parts = urlsplit(url)
        assert parts.netloc == "localhost:3000"
        assert parts.path == "/auth/login"
        assert parts.fragment == ""

    def test_uses_configured_login_path(self):
        table = RouteTable(login_path="/signin", redirect_param="next")

        url = login_redirect_url(f"{ORIGIN}/dashboard", table)

        assert url == f"{ORIGIN}/signin?next=%2Fdashboard"


class TestPostLoginRedirect:
    """Authenticated users leave the auth pages"""

    def test_defaults_to_landing_path(self):
        assert post_login_redirect_url(f"{ORIGIN}/auth/login") == f"{ORIGIN}/dashboard"

    def test_empty_value_falls_back(self):
        assert post_login_redirect_url(f"{ORIGIN}/auth/login?redirectTo=") == f"{ORIGIN}/dashboard"

    def test_follows_safe_redirect(self):
        url = post_login_redirect_url(f"{ORIGIN}/auth/login?redirectTo=%2Fprojects%2F7")

        assert url == f"{ORIGIN}/projects/7"

    def test_preserves_target_query_string(self):
        url = post_login_redirect_url(
            f"{ORIGIN}/auth/login?redirectTo=%2Ftasks%3Ffilter%3Dopen%26page%3D2"
        )

        assert url == f"{ORIGIN}/tasks?filter=open&page=2"

    def test_round_trip_through_login(self):
        """The login URL built for /tasks sends the user back to /tasks"""
        login_url = login_redirect_url(f"{ORIGIN}/tasks")

        assert post_login_redirect_url(login_url) == f"{ORIGIN}/tasks"

    def test_round_trip_keeps_query(self):
        login_url = login_redirect_url(f"{ORIGIN}/calendar?week=12")

        assert post_login_redirect_url(login_url) == f"{ORIGIN}/calendar?week=12"

    def test_round_trip_keeps_encoded_path(self):
        """An encoded '?' in the path stays part of the path"""
        login_url = login_redirect_url(f"{ORIGIN}/dashboard/a%3Fb")

        assert parse_qs(urlsplit(login_url).query)["redirectTo"] == ["/dashboard/a%3Fb"]
        assert post_login_redirect_url(login_url) == f"{ORIGIN}/dashboard/a%3Fb"

    @pytest.mark.parametrize(
        "target",
        [
            "https://evil.com",
            "https%3A%2F%2Fevil.com",
            "//evil.com",
            "%2F%2Fevil.com",
            "/\\evil.com",
            "javascript:alert(1)",
            "dashboard",
        ],
    )
    def test_rejects_foreign_targets(self, target):
        url = post_login_redirect_url(f"{ORIGIN}/auth/login?redirectTo={target}")

        assert url == f"{ORIGIN}/dashboard"
        assert "evil.com" not in url

    def test_uses_configured_default(self):
        table = RouteTable(default_login_redirect="/home")

        assert post_login_redirect_url(f"{ORIGIN}/auth/login", table) == f"{ORIGIN}/home"


@pytest.mark.parametrize(
    "target, expected",
    [
        ("/dashboard", True),
        ("/tasks?filter=open", True),
        ("//evil.com", False),
        ("/\\evil.com", False),
        ("https://evil.com/", False),
        ("", False),
        ("tasks", False),
    ],
)
def test_is_safe_redirect_target(target, expected):
    assert is_safe_redirect_target(target) is expected
