"""
Shared fixtures for the session gate tests.

The identity provider is never contacted: gate tests inject a fake
refresher, provider client tests use ``httpx.MockTransport``.
"""

import time
from typing import Any, Dict, List, Mapping, Optional

import httpx
import jwt
import pytest

from webgate.app.auth.cookies import RecordingCookieStore, encode_session_value
from webgate.app.auth.provider import AuthProviderClient
from webgate.app.config import Settings
from webgate.app.gate.observer import GateObserver
from webgate.app.gate.session import SessionRefreshResult
from webgate.app.models import CookieMutation, CookieOptions, GateErrorType, User

TEST_SUPABASE_URL = "https://abcd1234.supabase.co"
TEST_ANON_KEY = "test-anon-key"
TEST_COOKIE_NAME = "sb-abcd1234-auth-token"


def create_access_token(exp_delta_seconds: int = 3600, sub: str = "user-123") -> str:
    """Create an access token with an ``exp`` claim (signature is never checked)."""
    payload = {
        "sub": sub,
        "email": "test@example.com",
        "role": "authenticated",
        "exp": int(time.time()) + exp_delta_seconds,
    }
    return jwt.encode(payload, "test-signing-secret", algorithm="HS256")


def create_session(
    access_token: Optional[str] = None,
    refresh_token: str = "refresh-token-1",
    expires_at: Optional[int] = None,
) -> Dict[str, Any]:
    session = {
        "access_token": access_token or create_access_token(),
        "refresh_token": refresh_token,
        "token_type": "bearer",
        "expires_in": 3600,
    }
    if expires_at is not None:
        session["expires_at"] = expires_at
    return session


def session_cookies(session: Dict[str, Any], name: str = TEST_COOKIE_NAME) -> Dict[str, str]:
    """Request cookies carrying ``session`` the way the provider SDK writes them."""
    return {name: encode_session_value(session)}


def user_payload(user_id: str = "user-123", email: str = "test@example.com") -> Dict[str, Any]:
    return {
        "id": user_id,
        "email": email,
        "role": "authenticated",
        "aud": "authenticated",
        "app_metadata": {"provider": "email"},
        "user_metadata": {},
    }


class FakeRefresher:
    """Session refresher double that records every call."""

    def __init__(
        self,
        user: Optional[User] = None,
        mutations: Optional[List[CookieMutation]] = None,
        error_type: Optional[GateErrorType] = None,
        raises: Optional[Exception] = None,
    ):
        self.result = SessionRefreshResult(user=user, mutations=mutations or [], error_type=error_type)
        self.raises = raises
        self.calls: List[Dict[str, str]] = []

    async def refresh(self, cookies: Mapping[str, str]) -> SessionRefreshResult:
        self.calls.append(dict(cookies))
        if self.raises is not None:
            raise self.raises
        return self.result


class RecordingObserver(GateObserver):
    """Observer double collecting every hook invocation."""

    def __init__(self):
        self.checkpoints = []
        self.decisions = []
        self.failures = []

    def checkpoint(self, request_id, label, elapsed_ms):
        self.checkpoints.append((request_id, label))

    def decision_made(self, request_id, path, decision, elapsed_ms):
        self.decisions.append((request_id, path, decision))

    def gate_failed(self, request_id, path, error_type, exc):
        self.failures.append((request_id, path, error_type, exc))


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def test_settings():
    """Settings for a hosted project with default route tables"""
    return Settings(
        SUPABASE_URL=TEST_SUPABASE_URL,
        SUPABASE_ANON_KEY=TEST_ANON_KEY,
    )


@pytest.fixture
def test_user():
    return User.model_validate(user_payload())


@pytest.fixture
def refreshed_cookie():
    """A cookie write the provider requested during refresh"""
    return CookieMutation(
        name=TEST_COOKIE_NAME,
        value="base64-refreshed",
        options=CookieOptions(max_age=3600),
    )


@pytest.fixture
def observer():
    return RecordingObserver()


@pytest.fixture
def provider_requests():
    """Requests received by the mock provider, in order"""
    return []


@pytest.fixture
def make_provider_client(provider_requests):
    """
    Build an ``AuthProviderClient`` whose HTTP calls go to ``handler``.

    Returns a ``(client, store)`` pair; ``store.mutations`` holds the cookie
    writes the client performed.
    """
    def factory(handler, cookies: Optional[Mapping[str, str]] = None):
        def recording_handler(request: httpx.Request) -> httpx.Response:
            provider_requests.append(request)
            return handler(request)

        store = RecordingCookieStore(cookies or {})
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(recording_handler))
        client = AuthProviderClient(
            base_url=TEST_SUPABASE_URL,
            api_key=TEST_ANON_KEY,
            cookie_store=store,
            cookie_name=TEST_COOKIE_NAME,
            http_client=http_client,
        )
        return client, store

    return factory
