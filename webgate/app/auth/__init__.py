"""
Authentication Package

This package talks to the hosted identity provider (Supabase Auth).

Modules:
- provider: Async REST client (get user, refresh, PKCE code exchange)
- cookies: Session cookie codec and cookie stores
- routes: OAuth callback endpoint (/auth/callback)

The gate only ever consumes ``AuthProviderClient.get_user()``; token
issuance and verification stay with the provider.
"""

from .provider import AuthProviderClient, AuthProviderError, create_provider_client
from .routes import auth_router

__all__ = [
    "AuthProviderClient",
    "AuthProviderError",
    "create_provider_client",
    "auth_router",
]
