"""
auth/ports.py -- Storage contracts consumed by the token core.

The core talks to persistence only through these two Protocols. auth/store.py
implements them on SQLAlchemy Core; auth/memory.py implements them in process
for tests and local experiments.

Consistency is the store's job, not the core's. The one sequence that needs it
-- rotation's lookup, revoke, create -- runs inside transaction(), and
revoke_token() reports whether *this* call moved the row from valid to
revoked. Two concurrent rotations of one token therefore cannot both win.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from datetime import datetime
from typing import Optional, Protocol

from auth.models import RefreshToken, User


class RefreshTokenRepository(Protocol):
    """Persistence for renewal credentials."""

    def create(self, token: RefreshToken) -> RefreshToken:
        """Insert token and return it with id/created_at filled in."""

    def find_by_token(self, token: str, for_update: bool = False) -> Optional[RefreshToken]:
        """Return the row for token, or None. for_update locks the row inside a transaction."""

    def find_by_user(self, user_id: int) -> list[RefreshToken]:
        """Return every row owned by user_id, newest first."""

    def revoke_token(self, token: str) -> bool:
        """Mark token revoked. True only if this call changed it from unrevoked."""

    def revoke_all_for_user(self, user_id: int) -> int:
        """Revoke every unrevoked row of user_id in one statement; return rows changed."""

    def delete_expired(self, now: datetime) -> int:
        """Delete rows with expires_at < now; return rows deleted."""

    def delete_revoked(self) -> int:
        """Delete revoked rows; return rows deleted."""

    def count_active_for_user(self, user_id: int, now: datetime) -> int:
        """Count rows of user_id that are unrevoked and unexpired at now."""

    def transaction(self) -> AbstractContextManager["RefreshTokenRepository"]:
        """Yield a view whose calls commit together, or not at all if the block raises."""


class UserDirectory(Protocol):
    """Identity lookup, owned by the user-directory collaborator."""

    def get_by_id(self, user_id: int) -> Optional[User]: ...

    def get_by_email(self, email: str) -> Optional[User]: ...

    def get_by_name(self, name: str) -> Optional[User]: ...

    def exists_by_email(self, email: str) -> bool: ...

    def exists_by_name(self, name: str) -> bool: ...

    def create_user(self, user: User) -> int:
        """Insert user and return its id. Raises DuplicateRecord on a unique clash."""

    def list_users(self) -> list[User]: ...
