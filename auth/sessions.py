"""
auth/sessions.py -- Session issuance: one access token plus one refresh token.

The access token is stateless and free to throw away. The refresh-token row is
the only side effect, so it is written last: if the store write fails the
exception propagates and no bundle is ever handed out.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from auth.errors import MalformedInput
from auth.models import RefreshToken, TokenPair, User
from auth.ports import RefreshTokenRepository
from auth.roles import validate_role
from auth.tokens import TokenCodec, generate_refresh_token
from core.clock import Clock, utcnow
from core.config import TokenConfig

logger = logging.getLogger("sessiongate.auth.sessions")


class SessionIssuer:
    def __init__(
        self,
        codec: TokenCodec,
        tokens: RefreshTokenRepository,
        config: TokenConfig,
        clock: Clock = utcnow,
    ) -> None:
        self._codec = codec
        self._tokens = tokens
        self._config = config
        self._clock = clock

    def issue_session(self, user: User) -> TokenPair:
        """Mint an access token and a persisted refresh token for user."""
        return self.issue_into(self._tokens, user)

    def issue_into(self, tokens: RefreshTokenRepository, user: User) -> TokenPair:
        """Like issue_session(), but write the refresh token through tokens.

        Rotation passes its transactional view here so the new row commits
        together with the revocation of the old one.
        """
        _check_identity(user)
        access_token = self._codec.issue(user.id, user.name, user.email, user.role)
        row = tokens.create(
            RefreshToken(
                user_id=user.id,
                token=generate_refresh_token(),
                expires_at=self._clock() + timedelta(seconds=self._config.refresh_ttl_seconds),
                is_revoked=False,
            )
        )
        logger.info("Issued session for user_id=%s (refresh row id=%s)", user.id, row.id)
        return TokenPair(
            access_token=access_token,
            refresh_token=row.token,
            expires_in=self._config.access_ttl_seconds,
        )


def _check_identity(user: User) -> None:
    if user.id is None:
        raise MalformedInput("Cannot issue a session for an unsaved user.")
    if not user.name or not user.email:
        raise MalformedInput("User name and email are required.")
    if not validate_role(user.role):
        raise MalformedInput(f"Unknown role: {user.role!r}")
