"""
Redirect URL builders for the session gate.

Both builders take the full request URL and return an absolute URL on the
same origin, ready to be used as a ``Location`` header.
"""

import logging
from typing import Optional, Union
from urllib.parse import unquote, urlencode, urljoin, urlsplit

from starlette.datastructures import URL, QueryParams

from ..config import RouteTable
from .routes import is_public

logger = logging.getLogger(__name__)

_DEFAULT_TABLE = RouteTable()


def _origin(url: URL) -> str:
    return f"{url.scheme}://{url.netloc}"


def login_redirect_url(request_url: Union[URL, str], table: Optional[RouteTable] = None) -> str:
    """
    Build the login URL for an unauthenticated request.

    The current path and query string are carried in the ``redirectTo``
    parameter so the user lands back where they started. Public pages get no
    ``redirectTo``; there is nothing to return to. Percent-encoding in the
    path is kept, so ``/a%3Fb`` comes back as ``/a%3Fb`` and not as ``/a?b``.

    Args:
        request_url: Full URL of the incoming request
        table: Route table, defaults to the built-in one

    Returns:
        Absolute login URL, e.g. ``http://host/auth/login?redirectTo=%2Fdashboard``
    """
    table = table or _DEFAULT_TABLE
    url = URL(str(request_url))

    query = ""
    if not is_public(unquote(url.path), table):
        redirect_to = url.path + (f"?{url.query}" if url.query else "")
        query = urlencode({table.redirect_param: redirect_to})

    return str(url.replace(path=table.login_path, query=query, fragment=""))


def is_safe_redirect_target(target: str) -> bool:
    """
    Accept only same-origin relative paths.

    Rejects absolute URLs (``https://evil.com``), protocol-relative URLs
    (``//evil.com``) and the backslash variant browsers normalise to one
    (``/\\evil.com``).
    """
    if not target.startswith("/") or target.startswith("//"):
        return False
    if target.startswith("/\\"):
        return False
    parts = urlsplit(target)
    return not parts.scheme and not parts.netloc


def post_login_redirect_url(request_url: Union[URL, str], table: Optional[RouteTable] = None) -> str:
    """
    Resolve where an authenticated user should go from an auth page.

    Reads ``redirectTo`` from the current URL. Missing, empty or unsafe
    values fall back to the default landing path.
    """
    table = table or _DEFAULT_TABLE
    url = URL(str(request_url))
    origin = _origin(url)

    redirect_to = QueryParams(url.query).get(table.redirect_param)

    if redirect_to:
        if is_safe_redirect_target(redirect_to):
            resolved = urljoin(origin + "/", redirect_to)
            # urljoin can still hop hosts on exotic input
            if urlsplit(resolved).netloc == url.netloc:
                return resolved
        logger.warning(
            "Rejected unsafe post-login redirect target",
            extra={"redirect_to": redirect_to, "path": url.path},
        )

    return urljoin(origin + "/", table.default_login_redirect)
