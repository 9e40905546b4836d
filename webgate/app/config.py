"""
Configuration module for the web application gate.

This module uses Pydantic Settings to load and validate environment variables
for the hosted identity provider (Supabase Auth), the request-time session
gate, and logging.

Environment variables are loaded from .env file or system environment.
The route tables themselves are immutable values (see ``RouteTable``) so a
single ``Settings`` instance can be shared by every request.
"""

import re
from functools import lru_cache
from typing import List, Optional, Tuple
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# Route Tables
# =============================================================================

DEFAULT_PROTECTED_ROUTES: Tuple[str, ...] = (
    "/dashboard",
    "/profile",
    "/settings",
    "/tasks",
    "/projects",
    "/calendar",
    "/analytics",
    "/integrations",
    "/team",
    "/admin",
)

# tRPC procedures that need auth are also checked by the procedures themselves
DEFAULT_PROTECTED_API_ROUTES: Tuple[str, ...] = (
    "/api/tasks",
    "/api/projects",
    "/api/user",
    "/api/settings",
    "/api/team",
    "/api/integrations",
    "/api/analytics",
    "/api/trpc",
)

DEFAULT_PUBLIC_ROUTES: Tuple[str, ...] = (
    "/",
    "/auth/login",
    "/auth/signup",
    "/auth/callback",
    "/auth/reset-password",
    "/auth/verify-email",
    "/auth/error",
    "/about",
    "/pricing",
    "/blog",
    "/docs",
    "/api/health",
    "/api/auth/callback",
)

DEFAULT_EXCLUDED_PREFIXES: Tuple[str, ...] = (
    "/_next/static",
    "/_next/image",
    "/static/",
    "/favicon.ico",
    "/robots.txt",
    "/sitemap.xml",
    "/manifest.json",
)

DEFAULT_EXCLUDED_EXTENSIONS: Tuple[str, ...] = (
    "svg",
    "png",
    "jpg",
    "jpeg",
    "gif",
    "webp",
    "ico",
    "pdf",
    "zip",
    "woff",
    "woff2",
    "ttf",
    "eot",
)


class RouteTable(BaseModel):
    """
    Immutable route-protection configuration.

    Injected into the classifier, the redirect builder and the gate at
    construction time. Tests build their own tables with ``model_copy``.
    """

    model_config = ConfigDict(frozen=True)

    public_routes: Tuple[str, ...] = Field(
        default=DEFAULT_PUBLIC_ROUTES,
        description="Routes that never require authentication, even if they overlap a protected prefix",
    )
    protected_routes: Tuple[str, ...] = Field(
        default=DEFAULT_PROTECTED_ROUTES,
        description="Page path prefixes that require an authenticated user",
    )
    protected_api_routes: Tuple[str, ...] = Field(
        default=DEFAULT_PROTECTED_API_ROUTES,
        description="API path prefixes that require an authenticated user",
    )
    excluded_prefixes: Tuple[str, ...] = Field(
        default=DEFAULT_EXCLUDED_PREFIXES,
        description="Static/internal asset prefixes that bypass the gate entirely",
    )
    excluded_extensions: Tuple[str, ...] = Field(
        default=DEFAULT_EXCLUDED_EXTENSIONS,
        description="File extensions (without dot) that bypass the gate entirely",
    )
    login_path: str = Field(default="/auth/login", description="Login page path")
    callback_path: str = Field(default="/auth/callback", description="OAuth callback path")
    auth_prefix: str = Field(default="/auth", description="Namespace of the auth pages")
    default_login_redirect: str = Field(
        default="/dashboard",
        description="Landing path after login when no valid redirectTo is given",
    )
    redirect_param: str = Field(default="redirectTo", description="Return-path query parameter")

    @field_validator("login_path", "callback_path", "auth_prefix", "default_login_redirect")
    @classmethod
    def validate_absolute_path(cls, v: str) -> str:
        if not v.startswith("/") or v.startswith("//"):
            raise ValueError(f"Expected an absolute path starting with a single '/', got: {v}")
        return v


# =============================================================================
# Settings
# =============================================================================

def _split_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Identity provider access, gate behaviour and logging are defined here.
    """

    # =========================================================================
    # Identity Provider (Supabase Auth)
    # =========================================================================

    SUPABASE_URL: str = Field(
        ...,
        description="Base URL of the Supabase project (e.g., https://abcd1234.supabase.co)",
        min_length=1,
    )

    SUPABASE_ANON_KEY: str = Field(
        ...,
        description="Public anon key sent as the 'apikey' header on every auth call",
        min_length=1,
    )

    PROVIDER_TIMEOUT_SECONDS: float = Field(
        default=5.0,
        description="Transport timeout for identity provider calls",
        gt=0,
        le=60,
    )

    # =========================================================================
    # Session Cookies
    # =========================================================================

    SESSION_COOKIE_NAME: Optional[str] = Field(
        None,
        description="Override for the session cookie name (default: sb-<project-ref>-auth-token)",
    )

    SESSION_COOKIE_SECURE: bool = Field(
        default=False,
        description="Mark session cookies Secure (enable behind HTTPS)",
    )

    # =========================================================================
    # Gate Behaviour
    # =========================================================================

    DEFAULT_LOGIN_REDIRECT: str = Field(
        default="/dashboard",
        description="Landing path after login when no valid redirectTo is given",
    )

    EXTRA_PUBLIC_ROUTES: Optional[str] = Field(
        None,
        description="Comma-separated routes appended to the public route table",
    )

    EXTRA_PROTECTED_ROUTES: Optional[str] = Field(
        None,
        description="Comma-separated page prefixes appended to the protected route table",
    )

    EXTRA_PROTECTED_API_ROUTES: Optional[str] = Field(
        None,
        description="Comma-separated API prefixes appended to the protected API route table",
    )

    GATE_REQUIRE_SESSION_COOKIE: bool = Field(
        default=False,
        description="Skip the provider call when no session cookie is present",
    )

    GATE_DEBUG_TIMING: bool = Field(
        default=False,
        description="Log per-request gate checkpoints and timings at DEBUG level",
    )

    # =========================================================================
    # Logging
    # =========================================================================

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def supabase_url_str(self) -> str:
        """Provider base URL without trailing slash."""
        return self.SUPABASE_URL.rstrip("/")

    @property
    def project_ref(self) -> str:
        """
        Project reference used in the default cookie name.

        For hosted projects this is the first label of the hostname
        (``abcd1234`` for ``https://abcd1234.supabase.co``).
        """
        hostname = urlparse(self.SUPABASE_URL).hostname or ""
        return hostname.split(".")[0]

    @property
    def session_cookie_name(self) -> str:
        if self.SESSION_COOKIE_NAME:
            return self.SESSION_COOKIE_NAME
        return f"sb-{self.project_ref}-auth-token"

    @property
    def route_table(self) -> RouteTable:
        """Build the immutable route table from defaults plus EXTRA_* overrides."""
        return RouteTable(
            public_routes=DEFAULT_PUBLIC_ROUTES + tuple(_split_csv(self.EXTRA_PUBLIC_ROUTES)),
            protected_routes=DEFAULT_PROTECTED_ROUTES + tuple(_split_csv(self.EXTRA_PROTECTED_ROUTES)),
            protected_api_routes=DEFAULT_PROTECTED_API_ROUTES
            + tuple(_split_csv(self.EXTRA_PROTECTED_API_ROUTES)),
            default_login_redirect=self.DEFAULT_LOGIN_REDIRECT,
        )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("SUPABASE_URL")
    @classmethod
    def validate_supabase_url(cls, v: str) -> str:
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ValueError(
                f"Invalid SUPABASE_URL: {v}. Expected format: https://<project-ref>.supabase.co"
            )
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed_levels:
            raise ValueError(f"LOG_LEVEL must be one of {allowed_levels}, got: {v}")
        return v.upper()

    @field_validator("EXTRA_PUBLIC_ROUTES", "EXTRA_PROTECTED_ROUTES", "EXTRA_PROTECTED_API_ROUTES")
    @classmethod
    def validate_route_list(cls, v: Optional[str]) -> Optional[str]:
        """
        Validate that every comma-separated route is an absolute path.

        Raises:
            ValueError: If a route does not start with '/'
        """
        for route in _split_csv(v):
            if not route.startswith("/") or route.startswith("//"):
                raise ValueError(
                    f"Invalid route: '{route}'. Routes must start with a single '/'"
                )
        return v

    @field_validator("DEFAULT_LOGIN_REDIRECT")
    @classmethod
    def validate_default_redirect(cls, v: str) -> str:
        if not re.match(r"^/(?![/\\])", v):
            raise ValueError(f"DEFAULT_LOGIN_REDIRECT must be a same-origin path, got: {v}")
        return v


# =============================================================================
# Settings Singleton
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get or create a singleton Settings instance.

    Cached so the environment is read once per process.

    Raises:
        ValidationError: If required environment variables are missing
                        or invalid.
    """
    return Settings()


# =============================================================================
# Configuration Helpers
# =============================================================================

def validate_configuration(settings: Settings) -> dict:
    """
    Validate gate configuration and return a status report.

    Called during application startup; errors are logged, not raised, so a
    misconfigured route table is visible without taking the service down.

    Returns:
        Dictionary with validation status and any warnings.
    """
    errors = []
    warnings = []

    table = settings.route_table

    overlap = sorted(
        route for route in table.public_routes
        if route in table.protected_routes or route in table.protected_api_routes
    )
    if overlap:
        warnings.append(
            f"Routes listed as both public and protected (public wins): {', '.join(overlap)}"
        )

    if table.login_path not in table.public_routes:
        errors.append(f"Login path {table.login_path} is not a public route (redirect loop)")

    if table.callback_path not in table.public_routes:
        errors.append(f"Callback path {table.callback_path} is not a public route")

    if not settings.SESSION_COOKIE_SECURE and settings.supabase_url_str.startswith("https://"):
        warnings.append("SESSION_COOKIE_SECURE is disabled while the provider is served over HTTPS")

    if "localhost" in settings.supabase_url_str or "127.0.0.1" in settings.supabase_url_str:
        warnings.append("SUPABASE_URL points to localhost (may cause issues in containers)")

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
        "session_cookie_name": settings.session_cookie_name,
        "default_login_redirect": table.default_login_redirect,
    }
