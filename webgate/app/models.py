"""
Data Models Module

This module defines Pydantic models shared by the session gate, the
identity provider client and the HTTP routes.

Models are organized by functional area:
- Identity provider models (users, sessions)
- Cookie models (cookie options and mutations passed through the gate)
- Gate models (route categories, decisions, error taxonomy)
- System models (health, error responses)
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Identity Provider Models
# ============================================================================

class User(BaseModel):
    """Authenticated user as reported by the identity provider."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., description="Provider user identifier (UUID)")
    email: Optional[str] = Field(None, description="Primary email address")
    phone: Optional[str] = Field(None, description="Phone number, if any")
    role: Optional[str] = Field(None, description="Database role claim (e.g., 'authenticated')")
    aud: Optional[str] = Field(None, description="Audience claim")
    app_metadata: Dict[str, Any] = Field(default_factory=dict, description="Provider-managed metadata")
    user_metadata: Dict[str, Any] = Field(default_factory=dict, description="User-editable metadata")
    created_at: Optional[datetime] = Field(None, description="Account creation timestamp")
    last_sign_in_at: Optional[datetime] = Field(None, description="Last sign-in timestamp")


class ProviderSession(BaseModel):
    """Session tokens as stored in the session cookie and returned by the token endpoint."""

    model_config = ConfigDict(extra="ignore")

    access_token: str = Field(..., description="Short-lived access JWT")
    refresh_token: str = Field(..., description="Single-use refresh token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: Optional[int] = Field(None, description="Access token lifetime in seconds")
    expires_at: Optional[int] = Field(None, description="Access token expiry (epoch seconds)")
    user: Optional[User] = Field(None, description="User embedded in the session, if any")


# ============================================================================
# Cookie Models
# ============================================================================

class CookieOptions(BaseModel):
    """Attributes forwarded to ``Response.set_cookie`` unchanged."""

    max_age: Optional[int] = Field(None, description="Cookie lifetime in seconds (0 deletes)")
    path: str = Field(default="/", description="Cookie path")
    domain: Optional[str] = Field(None, description="Cookie domain")
    secure: bool = Field(default=False, description="Secure attribute")
    httponly: bool = Field(default=False, description="HttpOnly attribute")
    samesite: Optional[str] = Field(default="lax", description="SameSite attribute")


class CookieMutation(BaseModel):
    """A single cookie write the provider wants applied to the outgoing response."""

    name: str = Field(..., description="Cookie name")
    value: str = Field(..., description="Cookie value (empty when deleting)")
    options: CookieOptions = Field(default_factory=CookieOptions, description="Cookie attributes")

    @property
    def is_deletion(self) -> bool:
        return self.options.max_age == 0


# ============================================================================
# Gate Models
# ============================================================================

class RouteCategory(str, Enum):
    """Protection category of a request path."""

    PUBLIC = "public"
    PROTECTED_PAGE = "protected_page"
    PROTECTED_API = "protected_api"
    EXCLUDED = "excluded"
    UNPROTECTED = "unprotected"


class GateAction(str, Enum):
    """Terminal outcome of the gate for one request."""

    CONTINUE = "continue"
    REDIRECT_TO_LOGIN = "redirect_to_login"
    REDIRECT_TO_POST_LOGIN = "redirect_to_post_login"


class GateErrorType(str, Enum):
    """Error taxonomy reported in logs and the x-middleware-error header."""

    AUTH_CHECK_FAILED = "AUTH_CHECK_FAILED"
    SESSION_REFRESH_FAILED = "SESSION_REFRESH_FAILED"
    SUPABASE_CLIENT_ERROR = "SUPABASE_CLIENT_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class GateDecision(BaseModel):
    """Exactly one decision is produced per request."""

    action: GateAction = Field(..., description="Pass through or redirect")
    category: RouteCategory = Field(..., description="Category of the requested path")
    location: Optional[str] = Field(None, description="Redirect target for redirect actions")
    user: Optional[User] = Field(None, description="Authenticated user, if the provider was consulted")
    mutations: List[CookieMutation] = Field(default_factory=list, description="Cookies to apply")
    provider_called: bool = Field(default=False, description="Whether the session refresh ran")
    error_type: Optional[GateErrorType] = Field(None, description="Refresh failure, if any")

    @property
    def is_redirect(self) -> bool:
        return self.action != GateAction.CONTINUE

    @property
    def auth_status(self) -> Optional[str]:
        """Value for the x-auth-status header, or None when the provider was not consulted."""
        if not self.provider_called:
            return None
        if self.error_type is not None:
            return "error"
        return "authenticated" if self.user is not None else "unauthenticated"


# ============================================================================
# System Models
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response model."""

    status: str = Field(..., description="Service health status")
    service: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")


class ErrorResponse(BaseModel):
    """Standardized error response model."""

    error: str = Field(..., description="Error type or code")
    message: str = Field(..., description="Human-readable error message")
    detail: Optional[str] = Field(None, description="Additional error detail (debug only)")


# ============================================================================
# Exceptions
# ============================================================================

class GateError(Exception):
    """
    Failure inside the session gate itself.

    Caught by the middleware catch-all; ``error_type`` ends up in the
    x-middleware-error response header.
    """

    def __init__(
        self,
        error_type: GateErrorType,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.error_type = error_type
        self.message = message
        self.context = context or {}
