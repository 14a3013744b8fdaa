"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Two token sources are checked in priority order:
  1. Session cookie ("session" by default) -- set by POST /login.
  2. Authorization: Bearer <token> header -- API clients and scripts.

Both converge on an Identity after SessionIssuer.validate().

get_current_identity() raises the SessionError from validation (HTTP 401).
require_operator() wraps get_current_identity() and raises 403 for non-operators.

These are plain `def` dependencies: validation reads the identity store, which
may block, so FastAPI runs them on its thread pool.

Layer rule: no imports from api/ or resources/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.models import Identity
from auth.sessions import SessionIssuer
from core.errors import ForbiddenError, UnknownTokenError


def session_token_from_request(request: Request) -> str | None:
    """Return the raw session token from cookie or Bearer header, if any."""
    cookie_name = request.app.state.settings.session_cookie_name
    token: str | None = request.cookies.get(cookie_name)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
    return token or None


def get_current_identity(request: Request) -> Identity:
    """Require an active session. Raises a SessionError (HTTP 401) otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(identity: Identity = Depends(get_current_identity)): ...
    """
    token = session_token_from_request(request)
    if token is None:
        raise UnknownTokenError()
    sessions: SessionIssuer = request.app.state.sessions
    return sessions.validate(token)


def require_operator(request: Request) -> Identity:
    """Require the operator role. 401 if unauthenticated, 403 if not an operator."""
    identity = get_current_identity(request)
    if not identity.is_operator:
        raise ForbiddenError("operator access required")
    return identity
