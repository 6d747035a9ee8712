"""
auth/tokens.py -- Access-token codec and random token generators.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with the configured secret
       and carry user_id, username, email, role, a random jti, iat/nbf/exp,
       iss and sub. The jti makes two tokens issued in the same second for the
       same user differ.

  Verification and expiry are separate steps. verify() proves the signature
       and decodes the claims; it never looks at the clock. Callers apply
       is_expired() themselves, which keeps "stale but genuine" (Expired)
       distinguishable from "not ours" (InvalidSignature).

  Algorithm pinning: the header's alg must be HS256 before the signature is
       even checked. "none" and asymmetric algorithms are always rejected,
       whatever the claims say.

  Refresh tokens: secrets.token_hex(32) gives 256 bits of entropy as 64 hex
       characters. They are opaque -- not JWTs -- and only mean something to
       the store that holds them.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone

from jose import jwt
from jose.exceptions import JWTClaimsError, JWTError

from auth.errors import InvalidSignature, MalformedToken, SigningKeyError
from auth.models import AccessClaims
from core.clock import Clock, utcnow
from core.config import TokenConfig

logger = logging.getLogger("sessiongate.auth.tokens")

ALGORITHM = "HS256"

# jose would otherwise reject expired or not-yet-valid tokens inside decode(),
# merging expiry into signature failure. Expiry is checked by the caller.
_DECODE_OPTIONS = {
    "verify_exp": False,
    "verify_nbf": False,
    "verify_iat": False,
}

_REQUIRED_CLAIMS = ("user_id", "username", "email", "role", "jti", "iat", "nbf", "exp", "iss", "sub")


def generate_jti() -> str:
    """Return a random token identifier (128 bits, hex)."""
    return secrets.token_hex(16)


def generate_refresh_token() -> str:
    """Return a new opaque refresh token: 32 random bytes as 64 hex characters."""
    return secrets.token_hex(32)


def _from_timestamp(value) -> datetime:
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


class TokenCodec:
    """Issues and verifies signed access tokens.

    Stateless apart from the injected config and clock; one instance is shared
    by every request.
    """

    def __init__(self, config: TokenConfig, clock: Clock = utcnow) -> None:
        if not config.secret_key:
            raise ValueError("TokenCodec requires a non-empty secret key.")
        self._config = config
        self._clock = clock

    @property
    def access_ttl_seconds(self) -> int:
        return self._config.access_ttl_seconds

    def issue(self, user_id: int, username: str, email: str, role: str) -> str:
        """Encode a signed access token for the given identity.

        iat and nbf are "now"; exp is now + access TTL. Raises SigningKeyError
        if the key cannot be used to sign.
        """
        now = self._clock()
        payload = {
            "user_id": user_id,
            "username": username,
            "email": email,
            "role": role,
            "jti": generate_jti(),
            "iat": now,
            "nbf": now,
            "exp": now + timedelta(seconds=self._config.access_ttl_seconds),
            "iss": self._config.issuer,
            "sub": username,
        }
        try:
            return jwt.encode(payload, self._config.secret_key, algorithm=ALGORITHM)
        except JWTError as exc:
            logger.critical("Access token signing failed: %s", exc.__class__.__name__)
            raise SigningKeyError() from exc

    def verify(self, token: str) -> AccessClaims:
        """Verify the signature and decode the claims. Does not check expiry.

        Raises:
            MalformedToken:   the token cannot be decoded, the issuer is wrong,
                              or a required claim is missing.
            InvalidSignature: the algorithm is not HS256 or the signature does
                              not match the configured secret.
        """
        try:
            header = jwt.get_unverified_header(token)
        except JWTError as exc:
            raise MalformedToken() from exc
        if header.get("alg") != ALGORITHM:
            raise InvalidSignature("Unexpected signing algorithm.")

        try:
            payload = jwt.decode(
                token,
                self._config.secret_key,
                algorithms=[ALGORITHM],
                issuer=self._config.issuer,
                options=_DECODE_OPTIONS,
            )
        except JWTClaimsError as exc:
            raise MalformedToken(str(exc)) from exc
        except JWTError as exc:
            raise InvalidSignature() from exc

        missing = [c for c in _REQUIRED_CLAIMS if c not in payload]
        if missing:
            raise MalformedToken(f"Missing claims: {', '.join(missing)}")
        try:
            return AccessClaims(
                user_id=int(payload["user_id"]),
                username=str(payload["username"]),
                email=str(payload["email"]),
                role=str(payload["role"]),
                jti=str(payload["jti"]),
                issued_at=_from_timestamp(payload["iat"]),
                not_before=_from_timestamp(payload["nbf"]),
                expires_at=_from_timestamp(payload["exp"]),
                issuer=str(payload["iss"]),
                subject=str(payload["sub"]),
            )
        except (TypeError, ValueError, OverflowError) as exc:
            raise MalformedToken() from exc

    def is_expired(self, claims: AccessClaims) -> bool:
        """Strict expiry check against the codec's clock (expires_at < now)."""
        return claims.is_expired(self._clock())
