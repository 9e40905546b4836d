"""
Web Application
===============

FastAPI application fronted by a request-time session gate.

Packages:
    - gate: Route classification, redirect policy and the ASGI middleware
    - auth: Identity provider client (Supabase Auth), session cookies and
      the OAuth callback route

Modules:
    - config: Settings and the immutable route table
    - models: Shared Pydantic models and the gate error type
    - main: Application factory
"""
