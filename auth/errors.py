"""
auth/errors.py -- Typed failures raised by the token core.

Every failure a caller may need to act on is its own class. Each carries a
stable machine-readable code and the HTTP status the API layer maps it to, so
route handlers never translate errors by matching message text.

Hierarchy:
  AuthError
    MalformedInput
    Unauthorized                 -- any failed authentication (401)
      MalformedHeader            -- Authorization header is not "Bearer <token>"
      InvalidSignature           -- wrong algorithm or signature
      MalformedToken             -- undecodable structure or missing claims
      Expired                    -- valid signature, past expires_at
      InvalidCredentials         -- login failure
      NotFound                   -- refresh token unknown
      InvalidOrExpired           -- refresh token expired OR revoked
      IdentityMismatch           -- refresh token owned by someone else
    Forbidden                    -- authenticated, insufficient role (403)
    Conflict                     -- duplicate email/name at registration (409)
    StoreFailure                 -- persistence error (503)
      DuplicateRecord            -- unique constraint tripped
    SigningKeyError              -- signing key unusable (500)

InvalidOrExpired deliberately covers both expired and revoked refresh tokens.
Rotation responses must not tell a caller which of the two applies.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every failure raised by auth/."""

    status_code: int = 400
    code: str = "auth_error"
    default_message: str = "Authentication error."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class MalformedInput(AuthError):
    status_code = 400
    code = "malformed_input"
    default_message = "Malformed request."


# ---------------------------------------------------------------------------
# Authentication failures (401)
# ---------------------------------------------------------------------------


class Unauthorized(AuthError):
    status_code = 401
    code = "unauthorized"
    default_message = "Authentication required."


class MalformedHeader(Unauthorized):
    code = "malformed_header"
    default_message = "Authorization header must use the Bearer scheme."


class InvalidSignature(Unauthorized):
    code = "invalid_signature"
    default_message = "Access token signature is invalid."


class MalformedToken(Unauthorized):
    code = "malformed_token"
    default_message = "Access token could not be decoded."


class Expired(Unauthorized):
    code = "token_expired"
    default_message = "Access token has expired."


class InvalidCredentials(Unauthorized):
    code = "bad_credentials"
    default_message = "Invalid email or password."


class NotFound(Unauthorized):
    code = "refresh_token_not_found"
    default_message = "Refresh token not found."


class InvalidOrExpired(Unauthorized):
    code = "refresh_token_invalid"
    default_message = "Refresh token is invalid or expired."


class IdentityMismatch(Unauthorized):
    code = "refresh_token_mismatch"
    default_message = "Refresh token does not belong to this user."


# ---------------------------------------------------------------------------
# Everything else
# ---------------------------------------------------------------------------


class Forbidden(AuthError):
    status_code = 403
    code = "forbidden"
    default_message = "Insufficient role."


class Conflict(AuthError):
    status_code = 409
    code = "conflict"
    default_message = "Resource already exists."


class StoreFailure(AuthError):
    """The backing store failed. Fatal to the request, not to the process."""

    status_code = 503
    code = "store_failure"
    default_message = "Credential store unavailable."


class DuplicateRecord(StoreFailure):
    default_message = "Unique constraint violated."


class SigningKeyError(AuthError):
    """The signing key cannot be used. A configuration error, not a client error."""

    status_code = 500
    code = "signing_key_error"
    default_message = "Token signing is unavailable."
