"""
ASGI middleware running the session gate on every request.

Turns a ``GateDecision`` into an HTTP response:
    - CONTINUE: the request proceeds to the application with refreshed
      cookies in its ``cookie`` header and the user on ``request.state.user``
    - REDIRECT_*: a 307 redirect to the computed location

Cookie mutations are applied to whichever response is returned. Errors
inside the gate never escape: the request proceeds with an
``x-middleware-error`` header and no redirect, so a broken gate cannot
cause a redirect loop.
"""

import logging
import uuid
from typing import List

from starlette.datastructures import URL
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response
from starlette.status import HTTP_307_TEMPORARY_REDIRECT

from ..auth.cookies import apply_cookie_mutations
from ..models import CookieMutation, GateError, GateErrorType
from .orchestrator import SessionGate

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "x-request-id"
AUTH_STATUS_HEADER = "x-auth-status"
MIDDLEWARE_ERROR_HEADER = "x-middleware-error"


def apply_cookies_to_request(request: Request, mutations: List[CookieMutation]) -> None:
    """Rewrite the downstream request's cookie header so handlers see refreshed tokens."""
    if not mutations:
        return

    cookies = dict(request.cookies)
    for mutation in mutations:
        if mutation.is_deletion:
            cookies.pop(mutation.name, None)
        else:
            cookies[mutation.name] = mutation.value

    headers = [(name, value) for name, value in request.scope["headers"] if name != b"cookie"]
    if cookies:
        cookie_header = "; ".join(f"{name}={value}" for name, value in cookies.items())
        headers.append((b"cookie", cookie_header.encode("latin-1")))
    request.scope["headers"] = headers


def raw_request_url(request: Request) -> URL:
    """
    Request URL with the path exactly as the client sent it.

    ``request.url`` is built from the percent-decoded path, so an encoded
    ``%3F`` or ``%23`` in the path would turn into a query or fragment.
    """
    raw_path = request.scope.get("raw_path")
    if not raw_path:
        return request.url

    url = request.url
    query = request.scope.get("query_string", b"").decode("latin-1")
    raw = f"{url.scheme}://{url.netloc}{raw_path.decode('latin-1')}"
    return URL(raw + (f"?{query}" if query else ""))


class SessionGateMiddleware(BaseHTTPMiddleware):
    """
    Route-protection and session-refresh middleware.

    Usage:
        app.add_middleware(SessionGateMiddleware, gate=SessionGate(...))
    """

    def __init__(self, app, gate: SessionGate):
        super().__init__(app)
        self.gate = gate

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.scope["path"]

        if self.gate.is_excluded(path):
            return await call_next(request)

        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())

        try:
            decision = await self.gate.evaluate(raw_request_url(request), request.cookies, request_id)
            redirect = None
            if decision.is_redirect:
                if not decision.location:
                    raise GateError(
                        GateErrorType.UNKNOWN_ERROR,
                        f"{decision.action.value} decision without a location",
                        context={"path": path, "request_id": request_id},
                    )
                redirect = RedirectResponse(url=decision.location, status_code=HTTP_307_TEMPORARY_REDIRECT)
        except Exception as exc:
            error_type = exc.error_type if isinstance(exc, GateError) else GateErrorType.UNKNOWN_ERROR
            self.gate.observer.gate_failed(request_id, path, error_type, exc)
            logger.error(
                f"Unhandled error in session gate: {exc}",
                extra={
                    "path": path,
                    "request_id": request_id,
                    "error_type": error_type.value,
                    "exception_type": type(exc).__name__,
                },
                exc_info=True,
            )
            request.state.user = None
            response = await call_next(request)
            response.headers[MIDDLEWARE_ERROR_HEADER] = error_type.value
            response.headers[REQUEST_ID_HEADER] = request_id
            return response

        if redirect is not None:
            response = redirect
        else:
            apply_cookies_to_request(request, decision.mutations)
            request.state.user = decision.user
            response = await call_next(request)

        apply_cookie_mutations(response, decision.mutations)

        response.headers[REQUEST_ID_HEADER] = request_id
        if decision.auth_status is not None:
            response.headers[AUTH_STATUS_HEADER] = decision.auth_status

        return response
