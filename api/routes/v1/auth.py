"""
api/routes/v1/auth.py -- Authentication and session REST endpoints.

Routes:
  POST /api/v1/auth/register           -- create account; returns token pair
  POST /api/v1/auth/login              -- email/password login; returns token pair
  POST /api/v1/auth/refresh            -- rotate a refresh token; returns a new pair
  POST /api/v1/auth/validate           -- verify the Bearer access token; returns claims
  POST /api/v1/auth/logout             -- revoke one refresh token (requires auth)
  POST /api/v1/auth/logout-all         -- revoke every refresh token of the caller (requires auth)
  GET  /api/v1/auth/profile            -- current user's profile (requires auth)
  GET  /api/v1/auth/sessions           -- count of the caller's active refresh tokens (requires auth)
  GET  /api/v1/auth/users              -- list all users (admin only)
  POST /api/v1/auth/maintenance/purge  -- delete expired and revoked refresh tokens (admin only)

Security:
  [H2] register, login and refresh are rate-limited per IP (LOGIN_RATE_LIMIT).
  [C1] Login goes through AuthService.login(), which equalizes bcrypt timing.
  [M5] Cache-Control: no-store on every response that carries tokens.

Handlers are plain `def`: every one of them makes blocking store or bcrypt
calls, so FastAPI runs them in its threadpool.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import credential_limit, limiter
from api.models import (
    LoginRequest,
    LogoutRequest,
    MessageResponse,
    ProfileResponse,
    PurgeResponse,
    RefreshTokenRequest,
    RegisterRequest,
    SessionCountResponse,
    TokenPairResponse,
    UserResponse,
    ValidateTokenResponse,
)
from auth.dependencies import get_optional_auth_context, require_admin, require_user
from auth.errors import Unauthorized
from auth.gate import extract_bearer_token
from auth.models import AuthContext, TokenPair
from auth.service import AuthService

# Auth policy:
# - POST /api/v1/auth/register:          public, rate limited
# - POST /api/v1/auth/login:             public, rate limited
# - POST /api/v1/auth/refresh:           optional auth, rate limited -- the access token
#                                        is usually expired by the time a client refreshes
# - POST /api/v1/auth/validate:          public -- the token under test is the credential
# - POST /api/v1/auth/logout:            requires auth (require_user)
# - POST /api/v1/auth/logout-all:        requires auth (require_user)
# - GET  /api/v1/auth/profile:           requires auth (require_user)
# - GET  /api/v1/auth/sessions:          requires auth (require_user)
# - GET  /api/v1/auth/users:             requires admin (require_admin)
# - POST /api/v1/auth/maintenance/purge: requires admin (require_admin)
router = APIRouter()


def _service(request: Request) -> AuthService:
    return request.app.state.auth_service


def _token_response(pair: TokenPair, status_code: int = 200) -> JSONResponse:
    resp = JSONResponse(
        status_code=status_code,
        content=TokenPairResponse.from_pair(pair).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(credential_limit)  # [H2] must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/register", response_model=TokenPairResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create a user with role "user" and return a fresh token pair.

    409 conflict if the email or name is already registered.
    """
    pair = _service(request).register(body.name, body.email, body.password)
    return _token_response(pair, status_code=201)


@limiter.limit(credential_limit)  # [H2]
@router.post("/auth/login", response_model=TokenPairResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; return a token pair.

    Unknown email and wrong password both return 401 bad_credentials unless
    REVEAL_LOGIN_FAILURE_REASON is set.
    """
    pair = _service(request).login(body.email, body.password)
    return _token_response(pair)


@limiter.limit(credential_limit)  # [H2]
@router.post("/auth/refresh", response_model=TokenPairResponse)
def refresh(
    request: Request,
    body: RefreshTokenRequest,
    context: Optional[AuthContext] = Depends(get_optional_auth_context),
) -> JSONResponse:
    """Exchange a refresh token for a new pair. The old refresh token stops working.

    If the request also carries a valid access token, the refresh token must
    belong to that user (401 refresh_token_mismatch otherwise).
    """
    claimed_user_id = context.user_id if context is not None else None
    pair = _service(request).refresh_token(body.refresh_token, claimed_user_id)
    return _token_response(pair)


@router.post("/auth/validate", response_model=ValidateTokenResponse)
def validate(request: Request) -> ValidateTokenResponse:
    """Verify the access token in the Authorization header and echo its claims.

    Failures keep their specific code: token_expired, invalid_signature,
    malformed_token or malformed_header.
    """
    raw_header = request.headers.get("Authorization")
    if not raw_header:
        raise Unauthorized("Missing authentication token.")
    context = _service(request).validate_token(extract_bearer_token(raw_header))
    return ValidateTokenResponse.from_context(context)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout", response_model=MessageResponse)
def logout(
    request: Request,
    body: LogoutRequest,
    context: AuthContext = Depends(require_user),
) -> MessageResponse:
    """Revoke one refresh token. Unknown or already-revoked tokens still return 200."""
    _service(request).logout(body.refresh_token)
    return MessageResponse(message="Logged out.")


@router.post("/auth/logout-all", response_model=MessageResponse)
def logout_all(request: Request, context: AuthContext = Depends(require_user)) -> MessageResponse:
    """Revoke every refresh token of the caller.

    Access tokens already issued stay valid until they expire.
    """
    count = _service(request).logout_all(context.user_id)
    return MessageResponse(message="Logged out of all sessions.", revoked=count)


@router.get("/auth/profile", response_model=ProfileResponse)
def profile(request: Request, context: AuthContext = Depends(require_user)) -> ProfileResponse:
    """Return the caller's current directory record."""
    return ProfileResponse.from_user(_service(request).get_profile(context))


@router.get("/auth/sessions", response_model=SessionCountResponse)
def sessions(request: Request, context: AuthContext = Depends(require_user)) -> SessionCountResponse:
    return SessionCountResponse(
        user_id=context.user_id,
        active_sessions=_service(request).active_session_count(context.user_id),
    )


# ---------------------------------------------------------------------------
# Administration (admin only)
# ---------------------------------------------------------------------------


@router.get("/auth/users", response_model=list[UserResponse])
def list_users(request: Request, context: AuthContext = Depends(require_admin)) -> list[UserResponse]:
    """List all user accounts. Admin only."""
    return [
        UserResponse(id=u.id, name=u.name, email=u.email, role=u.role, created_at=u.created_at or "")
        for u in _service(request).list_users()
    ]


@router.post("/auth/maintenance/purge", response_model=PurgeResponse)
def purge(request: Request, context: AuthContext = Depends(require_admin)) -> PurgeResponse:
    """Run the janitor now instead of waiting for the background interval."""
    report = _service(request).cleanup()
    return PurgeResponse(expired_deleted=report.expired_deleted, revoked_deleted=report.revoked_deleted)
