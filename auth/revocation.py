"""
auth/revocation.py -- Refresh-token rotation and revocation.

Rotation is revoke-then-create inside one store transaction:

  1. look the token up (row lock where the backend supports it)
  2. reject if it is expired or revoked       -> InvalidOrExpired
  3. reject if another user owns it            -> IdentityMismatch
  4. compare-and-set revoke; losing the race   -> InvalidOrExpired
  5. issue a fresh pair through the same transaction

Any failure rolls the whole thing back. Each refresh token therefore works
exactly once: replaying it after a successful rotation fails with
InvalidOrExpired. Expired and revoked are reported identically on purpose so
a caller cannot use rotation to learn which one applies.

Logout never issues anything. revoke_one() is silent for unknown tokens so it
does not reveal whether a token exists.
"""

from __future__ import annotations

import logging

from auth.errors import IdentityMismatch, InvalidOrExpired, NotFound
from auth.models import TokenPair, User
from auth.ports import RefreshTokenRepository
from auth.sessions import SessionIssuer
from core.clock import Clock, utcnow

logger = logging.getLogger("sessiongate.auth.revocation")


class TokenRotator:
    def __init__(self, tokens: RefreshTokenRepository, issuer: SessionIssuer, clock: Clock = utcnow) -> None:
        self._tokens = tokens
        self._issuer = issuer
        self._clock = clock

    def rotate(self, refresh_token: str, user: User) -> TokenPair:
        """Exchange refresh_token for a brand-new pair. Not idempotent."""
        with self._tokens.transaction() as tx:
            row = tx.find_by_token(refresh_token, for_update=True)
            if row is None:
                raise NotFound()
            if not row.is_valid(self._clock()):
                logger.warning("Rejected rotation of invalid refresh row id=%s (user_id=%s)", row.id, row.user_id)
                raise InvalidOrExpired()
            if row.user_id != user.id:
                logger.warning("Refresh row id=%s owned by user_id=%s presented by user_id=%s", row.id, row.user_id, user.id)
                raise IdentityMismatch()
            if not tx.revoke_token(refresh_token):
                # A concurrent rotation revoked it between our read and write.
                raise InvalidOrExpired()
            pair = self._issuer.issue_into(tx, user)
        logger.info("Rotated refresh row id=%s for user_id=%s", row.id, user.id)
        return pair

    def revoke_one(self, refresh_token: str) -> None:
        """Revoke a single refresh token. Unknown or already-revoked tokens are a no-op."""
        self._tokens.revoke_token(refresh_token)

    def revoke_all(self, user_id: int) -> int:
        """Revoke every refresh token of user_id ("log out everywhere")."""
        count = self._tokens.revoke_all_for_user(user_id)
        logger.info("Revoked %d refresh token(s) for user_id=%s", count, user_id)
        return count
