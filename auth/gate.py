"""
auth/gate.py -- Admission control for protected operations.

authenticate() turns an Authorization header into an AuthContext or raises.
Failure modes stay distinct so logs and clients can tell them apart:

  no header                  -> Unauthorized
  not "Bearer <token>"       -> MalformedHeader
  undecodable token          -> MalformedToken
  wrong algorithm/signature  -> InvalidSignature
  genuine but past exp       -> Expired

try_authenticate() is the optional variant: every one of those failures
becomes None, for endpoints where identity only enriches the response.

authorize() is separate from authentication. A request can be authenticated
and still be forbidden.

The gate never touches the refresh-token store. Revoking refresh tokens does
not invalidate access tokens already issued; they live until exp.
"""

from __future__ import annotations

import logging
from typing import Optional

from auth.errors import Expired, Forbidden, MalformedHeader, Unauthorized
from auth.models import AuthContext
from auth.roles import has_role
from auth.tokens import TokenCodec
from core.clock import Clock, utcnow

logger = logging.getLogger("sessiongate.auth.gate")

BEARER_PREFIX = "Bearer "


def extract_bearer_token(raw_header: str) -> str:
    """Return the token from a "Bearer <token>" header or raise MalformedHeader."""
    if not raw_header.startswith(BEARER_PREFIX):
        raise MalformedHeader()
    token = raw_header[len(BEARER_PREFIX) :].strip()
    if not token or " " in token:
        raise MalformedHeader()
    return token


class AccessGate:
    def __init__(self, codec: TokenCodec, clock: Clock = utcnow) -> None:
        self._codec = codec
        self._clock = clock

    def authenticate(self, raw_header: Optional[str]) -> AuthContext:
        if not raw_header:
            raise Unauthorized("Missing authentication token.")
        return self.verify_token(extract_bearer_token(raw_header))

    def verify_token(self, token: str) -> AuthContext:
        """Verify a bare token (no "Bearer " prefix): signature first, then expiry."""
        claims = self._codec.verify(token)
        if claims.is_expired(self._clock()):
            raise Expired()
        return AuthContext.from_claims(claims)

    def try_authenticate(self, raw_header: Optional[str]) -> Optional[AuthContext]:
        try:
            return self.authenticate(raw_header)
        except Unauthorized as exc:
            if raw_header:
                logger.debug("Optional authentication ignored a bad token: %s", exc.code)
            return None

    @staticmethod
    def is_authorized(context: Optional[AuthContext], required_role: str) -> bool:
        return context is not None and has_role(context.role, required_role)

    def authorize(self, context: Optional[AuthContext], required_role: str) -> AuthContext:
        """Return context if its role satisfies required_role, else raise Forbidden."""
        if context is None:
            raise Unauthorized()
        if not self.is_authorized(context, required_role):
            logger.info("Denied user_id=%s role=%s (requires %s)", context.user_id, context.role, required_role)
            raise Forbidden()
        return context
