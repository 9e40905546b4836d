"""
Session refresh at the gate boundary.

The refresher asks the identity provider for the current user and hands
back the user together with the cookie writes the provider requested. It
never raises: every failure degrades to an anonymous user.
"""

import logging
from typing import Callable, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..auth.cookies import CookieStore, RecordingCookieStore
from ..auth.provider import AuthProviderClient, AuthProviderError
from ..models import CookieMutation, GateErrorType, User

logger = logging.getLogger(__name__)

ClientFactory = Callable[[CookieStore], AuthProviderClient]


class SessionRefreshResult(BaseModel):
    """Outcome of one refresh: user (or none), cookie writes, failure type."""

    model_config = ConfigDict(frozen=True)

    user: Optional[User] = None
    mutations: List[CookieMutation] = Field(default_factory=list)
    error_type: Optional[GateErrorType] = None


class SessionRefresher:
    """
    Validate and refresh the session carried by the request cookies.

    Args:
        client_factory: Builds a provider client bound to a cookie store.
            Called once per refresh so no client state leaks across requests.
    """

    def __init__(self, client_factory: ClientFactory):
        self._client_factory = client_factory

    async def refresh(self, cookies: Mapping[str, str]) -> SessionRefreshResult:
        store = RecordingCookieStore(cookies)

        try:
            client = self._client_factory(store)
            user = await client.get_user()
        except AuthProviderError as e:
            # Invalid, expired or revoked session: continue as anonymous
            logger.warning(
                f"Error refreshing auth token: {e.message}",
                extra={"status_code": e.status_code, "error_code": e.code},
            )
            return SessionRefreshResult(
                mutations=store.mutations,
                error_type=GateErrorType.SESSION_REFRESH_FAILED,
            )
        except Exception as e:
            logger.error(
                f"Unexpected error in auth middleware: {e}",
                extra={"exception_type": type(e).__name__},
                exc_info=True,
            )
            return SessionRefreshResult(
                mutations=store.mutations,
                error_type=GateErrorType.SUPABASE_CLIENT_ERROR,
            )

        return SessionRefreshResult(user=user, mutations=store.mutations)
