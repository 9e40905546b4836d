"""
Identity provider client for Supabase Auth (GoTrue).

This module handles:
- Loading the session from the request cookies
- Refreshing an expired access token with the refresh token
- Fetching the current user, which validates the access token server-side
- Exchanging an OAuth/PKCE authorization code for a session

Every cookie read and write goes through a ``CookieStore``; the client never
sees the request or response objects.
"""

import logging
import time
from typing import Any, Dict, Optional

import httpx
import jwt
from jwt.exceptions import InvalidTokenError

from ..config import Settings
from ..models import CookieMutation, CookieOptions, ProviderSession, User
from .cookies import (
    DEFAULT_COOKIE_MAX_AGE,
    CookieStore,
    chunk_value,
    combine_chunks,
    decode_session_value,
    deletion,
    encode_session_value,
    session_cookie_names,
)

logger = logging.getLogger(__name__)

# Refresh slightly before expiry so the token is still valid downstream
EXPIRY_MARGIN_SECONDS = 30

CLIENT_INFO = "webgate/1.0.0"


# =============================================================================
# Exceptions
# =============================================================================

class AuthProviderError(Exception):
    """
    Expected authentication error reported by the identity provider.

    Raised for invalid, expired or revoked tokens. Network failures and 5xx
    responses are not wrapped; they surface as ``httpx`` exceptions.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code

    @classmethod
    def from_response(cls, response: httpx.Response) -> "AuthProviderError":
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        message = (
            body.get("msg")
            or body.get("message")
            or body.get("error_description")
            or body.get("error")
            or f"Auth request failed with status {response.status_code}"
        )
        code = body.get("error_code") or body.get("code") or body.get("error")
        return cls(str(message), status_code=response.status_code, code=str(code) if code else None)


# =============================================================================
# Token Helpers
# =============================================================================

def get_token_expiry(session: ProviderSession) -> Optional[int]:
    """
    Expiry of the session's access token in epoch seconds.

    Uses ``expires_at`` when the session carries it, otherwise the ``exp``
    claim of the access token (read without verification; the provider
    verifies the token on every ``/user`` call).
    """
    if session.expires_at:
        return session.expires_at

    try:
        claims = jwt.decode(session.access_token, options={"verify_signature": False})
    except InvalidTokenError:
        return None

    exp = claims.get("exp")
    return int(exp) if isinstance(exp, (int, float)) else None


def is_session_expired(session: ProviderSession, margin_seconds: int = EXPIRY_MARGIN_SECONDS) -> bool:
    expires_at = get_token_expiry(session)
    if expires_at is None:
        return False
    return time.time() + margin_seconds >= expires_at


# =============================================================================
# Client
# =============================================================================

class AuthProviderClient:
    """
    Async client for the provider's auth REST API bound to one cookie store.

    Args:
        base_url: Project URL, e.g. ``https://abcd1234.supabase.co``
        api_key: Public anon key sent as ``apikey``
        cookie_store: Source and sink of session cookies
        cookie_name: Session cookie base name
        cookie_options: Attributes for written session cookies
        http_client: Shared ``httpx.AsyncClient``; a short-lived one is
            created per call when omitted
        timeout: Timeout for short-lived clients
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        cookie_store: CookieStore,
        cookie_name: str,
        cookie_options: Optional[CookieOptions] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 5.0,
    ):
        self.auth_url = f"{base_url.rstrip('/')}/auth/v1"
        self.api_key = api_key
        self.cookie_store = cookie_store
        self.cookie_name = cookie_name
        self.cookie_options = cookie_options or CookieOptions(max_age=DEFAULT_COOKIE_MAX_AGE)
        self._http_client = http_client
        self._timeout = timeout

    # -------------------------------------------------------------------------
    # HTTP
    # -------------------------------------------------------------------------

    def _headers(self, access_token: Optional[str] = None) -> Dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {access_token or self.api_key}",
            "X-Client-Info": CLIENT_INFO,
        }

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self.auth_url}{path}"
        if self._http_client is not None:
            return await self._http_client.request(method, url, **kwargs)

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.request(method, url, **kwargs)

    # -------------------------------------------------------------------------
    # Session Storage
    # -------------------------------------------------------------------------

    def load_session(self) -> Optional[ProviderSession]:
        """Read the session from cookies; malformed cookies count as no session."""
        raw = combine_chunks(self.cookie_name, self.cookie_store.get_all())
        if raw is None:
            return None

        try:
            return ProviderSession.model_validate(decode_session_value(raw))
        except ValueError as e:
            logger.debug(f"Ignoring malformed session cookie: {e}")
            return None

    def save_session(self, session: ProviderSession) -> None:
        value = encode_session_value(session.model_dump(mode="json", exclude_none=True))
        chunks = chunk_value(self.cookie_name, value)
        written = {name for name, _ in chunks}

        mutations = [
            CookieMutation(name=name, value=part, options=self.cookie_options)
            for name, part in chunks
        ]
        # Drop chunks left over from a longer previous value
        stale = session_cookie_names(self.cookie_name, self.cookie_store.get_all())
        mutations.extend(
            deletion(name, self.cookie_options) for name in stale if name not in written
        )

        self.cookie_store.set_all(mutations)

    def clear_session(self) -> None:
        names = session_cookie_names(self.cookie_name, self.cookie_store.get_all())
        if names:
            self.cookie_store.set_all([deletion(name, self.cookie_options) for name in names])

    def _session_from_response(self, response: httpx.Response) -> ProviderSession:
        try:
            session = ProviderSession.model_validate(response.json())
        except ValueError as e:
            # Covers non-JSON bodies and payloads without the session fields
            raise AuthProviderError(
                f"Malformed session response: {e}",
                status_code=response.status_code,
                code="malformed_response",
            ) from e
        if session.expires_at is None and session.expires_in:
            session = session.model_copy(update={"expires_at": int(time.time()) + session.expires_in})
        return session

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def refresh_session(self, refresh_token: str) -> ProviderSession:
        """
        Exchange a refresh token for a new session and persist it.

        Raises:
            AuthProviderError: If the provider rejects the refresh token or
                returns a malformed session
            httpx.HTTPError: On transport failures or 5xx responses
        """
        response = await self._request(
            "POST",
            "/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
            headers=self._headers(),
        )

        if response.status_code in (400, 401, 403):
            self.clear_session()
            raise AuthProviderError.from_response(response)
        response.raise_for_status()

        session = self._session_from_response(response)
        self.save_session(session)
        logger.debug("Refreshed provider session", extra={"expires_at": session.expires_at})
        return session

    async def get_user(self) -> Optional[User]:
        """
        Return the current user, refreshing the session first if it expired.

        Returns:
            The user, or None when the request carries no session

        Raises:
            AuthProviderError: If the session is invalid, expired or revoked
            httpx.HTTPError: On transport failures or 5xx responses
        """
        session = self.load_session()
        if session is None:
            return None

        if is_session_expired(session):
            session = await self.refresh_session(session.refresh_token)

        response = await self._request("GET", "/user", headers=self._headers(session.access_token))

        if response.status_code in (401, 403):
            self.clear_session()
            raise AuthProviderError.from_response(response)
        response.raise_for_status()

        return User.model_validate(response.json())

    async def exchange_code_for_session(self, auth_code: str) -> ProviderSession:
        """
        Complete the PKCE flow started on the login page.

        The code verifier is read from ``<cookie_name>-code-verifier`` and
        removed once the exchange succeeds.

        Raises:
            AuthProviderError: If the code is invalid, expired or already used,
                or the provider returns a malformed session
            httpx.HTTPError: On transport failures or 5xx responses
        """
        verifier_name = f"{self.cookie_name}-code-verifier"
        code_verifier = self.cookie_store.get_all().get(verifier_name)

        response = await self._request(
            "POST",
            "/token",
            params={"grant_type": "pkce"},
            json={"auth_code": auth_code, "code_verifier": code_verifier},
            headers=self._headers(),
        )

        if 400 <= response.status_code < 500:
            raise AuthProviderError.from_response(response)
        response.raise_for_status()

        session = self._session_from_response(response)
        self.save_session(session)
        if code_verifier is not None:
            self.cookie_store.set_all([deletion(verifier_name, self.cookie_options)])
        return session


def create_provider_client(
    settings: Settings,
    cookie_store: CookieStore,
    http_client: Optional[httpx.AsyncClient] = None,
) -> AuthProviderClient:
    """Build a provider client from application settings."""
    return AuthProviderClient(
        base_url=settings.supabase_url_str,
        api_key=settings.SUPABASE_ANON_KEY,
        cookie_store=cookie_store,
        cookie_name=settings.session_cookie_name,
        cookie_options=CookieOptions(
            max_age=DEFAULT_COOKIE_MAX_AGE,
            secure=settings.SESSION_COOKIE_SECURE,
        ),
        http_client=http_client,
        timeout=settings.PROVIDER_TIMEOUT_SECONDS,
    )
