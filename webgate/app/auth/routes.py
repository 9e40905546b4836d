"""
Authentication routes.

The session gate always lets the callback through (it is mid-flow); this
route finishes the flow by exchanging the authorization code for a session
and writing the session cookies.
"""

import logging
from typing import Optional
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, Query, Request
from fastapi.responses import RedirectResponse
from starlette.status import HTTP_307_TEMPORARY_REDIRECT

from ..gate.redirects import post_login_redirect_url
from .cookies import RecordingCookieStore, apply_cookie_mutations
from .provider import AuthProviderError, create_provider_client

logger = logging.getLogger(__name__)

auth_router = APIRouter(
    prefix="/auth",
    tags=["authentication"],
)


@auth_router.get("/callback")
async def callback(
    request: Request,
    code: Optional[str] = Query(None, description="Authorization code from the identity provider"),
    error: Optional[str] = Query(None, description="Error code if authentication failed"),
    error_description: Optional[str] = Query(None, description="Error description"),
):
    """
    Handle the OAuth / email-link callback.

    On success redirects to ``redirectTo`` (validated) or the default
    landing path; on any failure redirects to the login page with
    ``error=auth_failed``.
    """
    settings = request.app.state.settings
    table = settings.route_table
    origin = f"{request.url.scheme}://{request.url.netloc}"
    failure_url = f"{origin}{table.login_path}?{urlencode({'error': 'auth_failed'})}"

    if error:
        logger.warning(f"Provider returned an error to the callback: {error_description or error}")
        return RedirectResponse(url=failure_url, status_code=HTTP_307_TEMPORARY_REDIRECT)

    if not code:
        return RedirectResponse(url=failure_url, status_code=HTTP_307_TEMPORARY_REDIRECT)

    store = RecordingCookieStore(request.cookies)
    client = create_provider_client(settings, store, request.app.state.app_state.http_client)

    try:
        await client.exchange_code_for_session(code)
    except AuthProviderError as e:
        logger.warning(
            f"Code exchange rejected: {e.message}",
            extra={"status_code": e.status_code, "error_code": e.code},
        )
        return RedirectResponse(url=failure_url, status_code=HTTP_307_TEMPORARY_REDIRECT)
    except httpx.HTTPError as e:
        logger.error(f"Code exchange failed: {e}", exc_info=True)
        return RedirectResponse(url=failure_url, status_code=HTTP_307_TEMPORARY_REDIRECT)

    response = RedirectResponse(
        url=post_login_redirect_url(request.url, table),
        status_code=HTTP_307_TEMPORARY_REDIRECT,
    )
    apply_cookie_mutations(response, store.mutations)
    return response
