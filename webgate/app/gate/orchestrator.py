"""
Session Gate
============

Per-request decision: classify the path, skip the identity provider for
anonymous-safe traffic, refresh the session otherwise, then apply the
redirect policy.

Decision table (evaluated in order):

    excluded asset                      -> CONTINUE, no provider call
    not protected and not an auth page  -> CONTINUE, no provider call
    protected and no user               -> REDIRECT_TO_LOGIN
    user on an auth page                -> REDIRECT_TO_POST_LOGIN
    anything else                       -> CONTINUE with refreshed cookies

The callback route is never an auth page, so it always continues.
"""

import logging
import time
from typing import Mapping, Optional
from urllib.parse import unquote

from starlette.datastructures import URL

from ..auth.cookies import has_session_cookie
from ..config import RouteTable
from ..models import GateAction, GateDecision, GateErrorType, RouteCategory
from .observer import GateObserver
from .redirects import login_redirect_url, post_login_redirect_url
from .routes import classify, is_auth_page, is_excluded, is_protected
from .session import SessionRefresher, SessionRefreshResult

logger = logging.getLogger(__name__)


class SessionGate:
    """
    Route classification and session gate.

    Args:
        routes: Immutable route table
        refresher: Session refresher consulted for protected and auth pages
        observer: Receives checkpoints and decisions (no-op by default)
        session_cookie_name: Base name of the session cookie
        require_session_cookie: Treat requests without a session cookie as
            anonymous without calling the provider
    """

    def __init__(
        self,
        routes: RouteTable,
        refresher: SessionRefresher,
        observer: Optional[GateObserver] = None,
        session_cookie_name: Optional[str] = None,
        require_session_cookie: bool = False,
    ):
        if require_session_cookie and not session_cookie_name:
            raise ValueError("require_session_cookie needs a session_cookie_name")

        self.routes = routes
        self.refresher = refresher
        self.observer = observer or GateObserver()
        self.session_cookie_name = session_cookie_name
        self.require_session_cookie = require_session_cookie

    def is_excluded(self, path: str) -> bool:
        return is_excluded(path, self.routes)

    async def evaluate(
        self,
        url: URL,
        cookies: Mapping[str, str],
        request_id: str = "-",
    ) -> GateDecision:
        started = time.perf_counter()
        # Classify the decoded path; the URL keeps the path as sent for redirects
        path = unquote(url.path)

        def elapsed() -> float:
            return (time.perf_counter() - started) * 1000

        if self.is_excluded(path):
            return GateDecision(action=GateAction.CONTINUE, category=RouteCategory.EXCLUDED)

        category = classify(path, self.routes)
        protected = is_protected(path, self.routes)
        auth_page = is_auth_page(path, self.routes)
        self.observer.checkpoint(request_id, "classified", elapsed())

        if not protected and not auth_page:
            decision = GateDecision(action=GateAction.CONTINUE, category=category)
            self.observer.decision_made(request_id, path, decision, elapsed())
            return decision

        provider_called = False
        if self.require_session_cookie and not has_session_cookie(self.session_cookie_name, cookies):
            result = SessionRefreshResult()
            self.observer.checkpoint(request_id, "no-session-cookie", elapsed())
        else:
            provider_called = True
            try:
                result = await self.refresher.refresh(cookies)
            except Exception as exc:
                # Treated as anonymous so protected routes still redirect
                logger.error(
                    f"Auth check failed: {exc}",
                    extra={"path": path, "request_id": request_id, "exception_type": type(exc).__name__},
                    exc_info=True,
                )
                result = SessionRefreshResult(error_type=GateErrorType.AUTH_CHECK_FAILED)
            self.observer.checkpoint(request_id, "session-refreshed", elapsed())

        location = None
        if protected and result.user is None:
            action = GateAction.REDIRECT_TO_LOGIN
            location = login_redirect_url(url, self.routes)
        elif result.user is not None and auth_page:
            action = GateAction.REDIRECT_TO_POST_LOGIN
            location = post_login_redirect_url(url, self.routes)
        else:
            action = GateAction.CONTINUE

        decision = GateDecision(
            action=action,
            category=category,
            location=location,
            user=result.user,
            mutations=result.mutations,
            provider_called=provider_called,
            error_type=result.error_type,
        )
        self.observer.decision_made(request_id, path, decision, elapsed())
        return decision
