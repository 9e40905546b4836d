"""
Session Gate Package

Request-time route protection and session refresh.

Modules:
- routes: Path classification (public, protected page/API, excluded asset)
- redirects: Login and post-login redirect URL builders
- session: Session refresher over the identity provider client
- orchestrator: Per-request decision logic (SessionGate)
- observer: Checkpoint/timing observers
- middleware: ASGI middleware applying gate decisions to responses
"""

from .middleware import SessionGateMiddleware
from .observer import GateObserver, LoggingGateObserver
from .orchestrator import SessionGate
from .redirects import login_redirect_url, post_login_redirect_url
from .routes import classify, is_auth_page, is_excluded, is_protected, is_public, matcher_pattern
from .session import SessionRefresher, SessionRefreshResult

__all__ = [
    "SessionGateMiddleware",
    "SessionGate",
    "SessionRefresher",
    "SessionRefreshResult",
    "GateObserver",
    "LoggingGateObserver",
    "login_redirect_url",
    "post_login_redirect_url",
    "classify",
    "is_auth_page",
    "is_excluded",
    "is_protected",
    "is_public",
    "matcher_pattern",
]
