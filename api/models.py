"""
API request and response models for SessionGate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Separation of concerns: auth/ models = domain truth; api/ models = API contract.
"""

import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import AuthContext, TokenPair, User
from auth.roles import role_display_name

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

NAME_PATTERN = r"^[a-zA-Z0-9]+$"
EMAIL_PATTERN = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

# Letters, digits and ASCII punctuation. Checked with Python's re rather than
# Field(pattern=...) because of the quoting and escaping the class needs.
_PASSWORD_RE = re.compile(r"""^[a-zA-Z0-9!@#$%^&*()_+\-=\[\]{};':"\\|,.<>/?]+$""")


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=2, max_length=10, pattern=NAME_PATTERN)
    email: str = Field(max_length=50, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=6, max_length=18)

    @field_validator("password")
    @classmethod
    def password_charset(cls, value: str) -> str:
        if not _PASSWORD_RE.match(value):
            raise ValueError("Password may contain only letters, digits and ASCII punctuation.")
        return value


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    Only the shape is checked here. Password rules are not re-applied so that
    a rule change never locks out an existing account.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(max_length=50, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1, max_length=72)


class RefreshTokenRequest(BaseModel):
    """Request body for POST /api/v1/auth/refresh and /logout."""

    model_config = ConfigDict(str_strip_whitespace=True)

    refresh_token: str = Field(min_length=1, max_length=255)


class LogoutRequest(RefreshTokenRequest):
    pass


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class TokenPairResponse(BaseModel):
    """Access + refresh token bundle. Sent with Cache-Control: no-store [M5]."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int

    @classmethod
    def from_pair(cls, pair: TokenPair) -> "TokenPairResponse":
        return cls(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            expires_in=pair.expires_in,
        )


class ProfileResponse(BaseModel):
    """Response for GET /api/v1/auth/profile. Never includes the password hash."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    role: str
    role_display: str
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "ProfileResponse":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            role_display=role_display_name(user.role),
            created_at=user.created_at or "",
        )


class ValidateTokenResponse(BaseModel):
    """Response for POST /api/v1/auth/validate: the verified claims."""

    model_config = ConfigDict(frozen=True)

    valid: bool = True
    user_id: int
    username: str
    email: str
    role: str
    expires_at: str

    @classmethod
    def from_context(cls, context: AuthContext) -> "ValidateTokenResponse":
        return cls(
            user_id=context.user_id,
            username=context.username,
            email=context.email,
            role=context.role,
            expires_at=context.claims.expires_at.isoformat(),
        )


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    revoked: Optional[int] = None


class SessionCountResponse(BaseModel):
    """Response for GET /api/v1/auth/sessions."""

    model_config = ConfigDict(frozen=True)

    user_id: int
    active_sessions: int


class UserResponse(BaseModel):
    """One row in GET /api/v1/auth/users."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    role: str
    created_at: str


class PurgeResponse(BaseModel):
    """Response for POST /api/v1/auth/maintenance/purge."""

    model_config = ConfigDict(frozen=True)

    expired_deleted: int
    revoked_deleted: int


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
