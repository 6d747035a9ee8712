"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class. Stores and services do the work; these own the domain
shape. The only logic here is the validity predicates on RefreshToken and
AccessClaims, because "is this credential still usable" is part of the
credential's definition, not a storage concern.

Layer rule: imports only core/ and auth/roles.py.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from auth.roles import ROLE_USER
from core.clock import utcnow


@dataclass
class User:
    """An identity known to the user directory.

    name is the unique display name (also used as the JWT subject). Only
    id/name/email/role flow into issued tokens; hashed_password never leaves
    the directory and the login check.

    id is None before the record is written to the database.
    """

    name: str
    email: str
    role: str = ROLE_USER  # "user" | "admin"
    id: Optional[int] = None
    hashed_password: str = ""
    created_at: Optional[str] = None  # ISO 8601, set by store on insert
    updated_at: Optional[str] = None


@dataclass
class RefreshToken:
    """A persisted, single-use renewal credential.

    token is 64 hex characters (32 random bytes) and unique across all rows.
    A row is usable only while it is both unexpired and unrevoked; rotation
    revokes it and creates a new row rather than updating it in place.

    Expiry is strict: a token whose expires_at equals "now" is still valid.
    """

    user_id: int
    token: str
    expires_at: datetime
    is_revoked: bool = False
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.expires_at < (now or utcnow())

    def is_valid(self, now: datetime | None = None) -> bool:
        return not self.is_expired(now) and not self.is_revoked


@dataclass(frozen=True)
class AccessClaims:
    """Decoded claims of a verified access token.

    Verification only proves the signature. Whether the token is still inside
    its lifetime is a separate question answered by is_expired().
    """

    user_id: int
    username: str
    email: str
    role: str
    jti: str
    issued_at: datetime
    not_before: datetime
    expires_at: datetime
    issuer: str
    subject: str

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.expires_at < (now or utcnow())


@dataclass(frozen=True)
class AuthContext:
    """Identity exposed to request handlers after the access gate admits a request."""

    user_id: int
    username: str
    email: str
    role: str
    claims: AccessClaims

    @classmethod
    def from_claims(cls, claims: AccessClaims) -> "AuthContext":
        return cls(
            user_id=claims.user_id,
            username=claims.username,
            email=claims.email,
            role=claims.role,
            claims=claims,
        )


@dataclass(frozen=True)
class TokenPair:
    """An access token, its paired refresh token, and the access TTL in seconds."""

    access_token: str
    refresh_token: str
    expires_in: int
