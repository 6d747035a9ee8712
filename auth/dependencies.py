"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Only the Authorization: Bearer <token> header is accepted. Every helper
delegates to the AccessGate stored on app.state by the lifespan, so the
failure it raises is the gate's own typed AuthError (MalformedHeader,
Expired, Forbidden...). The exception handler in api/main.py turns those into
the JSON error envelope.

get_optional_auth_context() is the soft variant (returns None on failure).
get_auth_context() raises 401 if the request is not authenticated.
require_role(role) builds a dependency that also raises 403 below that role.

The request middleware in api/main.py has usually resolved the optional
context already (request.state.auth); these helpers reuse it when present.

Layer rule: no imports from api/.
  auth/dependencies.py may import from fastapi (for Depends/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Optional

from fastapi import Depends, Request

from auth.gate import AccessGate
from auth.models import AuthContext
from auth.roles import ROLE_ADMIN, ROLE_USER, get_role_level


def _gate(request: Request) -> AccessGate:
    return request.app.state.gate


def get_optional_auth_context(request: Request) -> Optional[AuthContext]:
    """Return the caller's AuthContext, or None if the request carries no usable token.

    Never raises on bad tokens -- callers that need a hard 401 should use
    get_auth_context().
    """
    cached = getattr(request.state, "auth", None)
    if cached is not None:
        return cached
    return _gate(request).try_authenticate(request.headers.get("Authorization"))


def get_auth_context(request: Request) -> AuthContext:
    """Require authentication.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(context: AuthContext = Depends(get_auth_context)): ...
    """
    cached = getattr(request.state, "auth", None)
    if cached is not None:
        return cached
    return _gate(request).authenticate(request.headers.get("Authorization"))


def require_role(role: str) -> Callable[..., AuthContext]:
    """Build a dependency that admits callers whose role is at least role.

    The role is checked when the route is defined, so a typo fails at import
    time rather than on the first request.
    """
    get_role_level(role)

    def dependency(request: Request, context: AuthContext = Depends(get_auth_context)) -> AuthContext:
        return _gate(request).authorize(context, role)

    dependency.__name__ = f"require_{role}"
    return dependency


require_user = require_role(ROLE_USER)
require_admin = require_role(ROLE_ADMIN)
