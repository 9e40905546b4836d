"""
FastAPI Application Factory
===========================

Entry point for the web application. Every request passes through the
session gate before reaching a route.

Architecture:
    Browser → SessionGateMiddleware → Routes
                      ↓
               Supabase Auth (session refresh)

Routes:
    - /auth/callback : OAuth / email-link callback (code exchange)
    - /api/health    : Health check endpoint (public)
    - /api/user      : Current user (protected API)
    - /              : Service information (public)

Environment Variables Required:
    - SUPABASE_URL: Supabase project URL (e.g., "https://abcd1234.supabase.co")
    - SUPABASE_ANON_KEY: Public anon key
    - LOG_LEVEL: Logging level (default: INFO)
    - GATE_DEBUG_TIMING: Log gate checkpoints and timings (default: false)

Running the Service:
    Development:
        uvicorn webgate.app.main:create_app --factory --reload --host 0.0.0.0 --port 3000

    Production:
        uvicorn webgate.app.main:create_app --factory --host 0.0.0.0 --port 3000 --workers 4
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import httpx
import uvicorn
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from .auth.cookies import CookieStore
from .auth.provider import AuthProviderClient, create_provider_client
from .auth.routes import auth_router
from .config import Settings, get_settings, validate_configuration
from .gate import GateObserver, LoggingGateObserver, SessionGate, SessionGateMiddleware, SessionRefresher
from .models import ErrorResponse, HealthResponse

SERVICE_NAME = "webgate"
SERVICE_VERSION = "1.0.0"


# Configure structured JSON logging
def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


class AppState:
    """
    Per-application state container.

    Holds the shared HTTP client used for identity provider calls.
    """
    def __init__(self):
        self.http_client: Optional[httpx.AsyncClient] = None


def build_gate(
    settings: Settings,
    app_state: AppState,
    refresher: Optional[SessionRefresher] = None,
    observer: Optional[GateObserver] = None,
) -> SessionGate:
    """
    Wire the session gate from settings.

    The default refresher builds a provider client per request on top of
    the shared HTTP client (created in the lifespan; short-lived clients are
    used until then).
    """
    if refresher is None:
        def client_factory(store: CookieStore) -> AuthProviderClient:
            return create_provider_client(settings, store, app_state.http_client)

        refresher = SessionRefresher(client_factory)

    return SessionGate(
        routes=settings.route_table,
        refresher=refresher,
        observer=observer or LoggingGateObserver(timing=settings.GATE_DEBUG_TIMING),
        session_cookie_name=settings.session_cookie_name,
        require_session_cookie=settings.GATE_REQUIRE_SESSION_COOKIE,
    )


def create_app(
    settings: Optional[Settings] = None,
    refresher: Optional[SessionRefresher] = None,
    observer: Optional[GateObserver] = None,
) -> FastAPI:
    """
    Application factory function.

    Creates and configures the FastAPI application instance with:
        - Lifespan management (shared provider HTTP client)
        - Session gate middleware
        - Route handlers
        - Exception handlers

    Args:
        settings: Settings override (defaults to environment)
        refresher: Session refresher override, mainly for tests
        observer: Gate observer override

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()
    app_state = AppState()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings.LOG_LEVEL)
        logger = logging.getLogger("webgate.main")

        report = validate_configuration(settings)
        for error in report["errors"]:
            logger.error(f"Configuration error: {error}")
        for warning in report["warnings"]:
            logger.warning(f"Configuration warning: {warning}")

        app_state.http_client = httpx.AsyncClient(timeout=settings.PROVIDER_TIMEOUT_SECONDS)
        logger.info(
            "Web application started",
            extra={
                "service": SERVICE_NAME,
                "version": SERVICE_VERSION,
                "session_cookie": settings.session_cookie_name,
            }
        )

        yield

        logger.info("Shutting down web application")
        await app_state.http_client.aclose()
        app_state.http_client = None

    app = FastAPI(
        title="Web Application",
        description="Web application protected by a request-time session gate",
        version=SERVICE_VERSION,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.app_state = app_state

    app.add_middleware(
        SessionGateMiddleware,
        gate=build_gate(settings, app_state, refresher=refresher, observer=observer),
    )

    app.include_router(auth_router)

    @app.get("/api/health", tags=["System"], response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """Health check endpoint (public)."""
        return HealthResponse(status="ok", service=SERVICE_NAME, version=SERVICE_VERSION)

    @app.get("/api/user", tags=["User"])
    async def current_user(request: Request) -> Dict[str, Any]:
        """
        Return the user the session gate attached to the request.

        The gate redirects anonymous requests before they get here; a missing
        user means the gate degraded (see x-middleware-error).
        """
        user = getattr(request.state, "user", None)
        if user is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Not authenticated",
            )
        return {"user": user.model_dump(mode="json")}

    @app.get("/", tags=["System"])
    async def root() -> Dict[str, Any]:
        """Service metadata (public)."""
        return {
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "endpoints": {
                "health": "/api/health",
                "user": "/api/user",
                "callback": "/auth/callback",
            }
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Global exception handler for unhandled errors.

        Logs the error and returns a standardized error response.
        """
        logger = logging.getLogger("webgate.main")
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__
            },
            exc_info=True
        )

        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="internal_server_error",
                message="An unexpected error occurred",
                detail=str(exc) if settings.LOG_LEVEL == "DEBUG" else None,
            ).model_dump()
        )

    return app


if __name__ == "__main__":
    uvicorn.run(
        "webgate.app.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=3000,
        reload=True,
        log_level=get_settings().LOG_LEVEL.lower()
    )
