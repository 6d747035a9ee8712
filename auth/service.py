"""
auth/service.py -- AuthService: the operations the HTTP layer calls.

Pattern: Facade. Routes call one method per operation; the service composes
the codec, issuer, rotator, gate and janitor and owns the user-directory
lookups that sit around them (registration, password check, reloading a user
before rotation).

Security:
  [C1] login() runs bcrypt on every path. Unknown emails are checked against
       a dummy hash so response time does not reveal whether an account
       exists.
  [C2] By default "no such user" and "wrong password" raise the same
       InvalidCredentials. reveal_login_failure_reason=True restores the
       older distinct messages for deployments that rely on them.
  [C3] Refresh reloads the user from the directory, so a role change takes
       effect at the next rotation rather than at refresh-token expiry.

Layer rule: no imports from api/. No fastapi imports.
"""

from __future__ import annotations

import logging
from typing import Optional

from auth.errors import (
    Conflict,
    DuplicateRecord,
    InvalidCredentials,
    InvalidOrExpired,
    MalformedInput,
    NotFound,
    Unauthorized,
)
from auth.gate import AccessGate
from auth.janitor import JanitorReport, TokenJanitor
from auth.models import AuthContext, TokenPair, User
from auth.passwords import equalize_timing, hash_password, verify_password
from auth.ports import RefreshTokenRepository, UserDirectory
from auth.revocation import TokenRotator
from auth.roles import ROLE_USER, validate_role
from auth.sessions import SessionIssuer
from auth.tokens import TokenCodec
from core.clock import Clock, utcnow
from core.config import TokenConfig

logger = logging.getLogger("sessiongate.auth.service")

_USER_NOT_FOUND = "user not found"
_WRONG_PASSWORD = "wrong password"


class AuthService:
    """Register, Login, RefreshToken, Logout, LogoutAll, ValidateToken, GetProfile.

    Usage:
        engine = create_store_engine(settings.database_url)
        service = AuthService(UserStore(engine=engine), RefreshTokenStore(engine=engine), TokenConfig.from_settings(settings))
        pair = service.register("alice", "alice@example.com", "s3cret!")
        context = service.validate_token(pair.access_token)
    """

    def __init__(
        self,
        users: UserDirectory,
        tokens: RefreshTokenRepository,
        config: TokenConfig,
        clock: Clock = utcnow,
        reveal_login_failure_reason: bool = False,
    ) -> None:
        self.users = users
        self.tokens = tokens
        self._clock = clock
        self._reveal = reveal_login_failure_reason
        self.codec = TokenCodec(config, clock)
        self.issuer = SessionIssuer(self.codec, tokens, config, clock)
        self.rotator = TokenRotator(tokens, self.issuer, clock)
        self.gate = AccessGate(self.codec, clock)
        self.janitor = TokenJanitor(tokens, clock)

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def register(self, name: str, email: str, password: str, role: str = ROLE_USER) -> TokenPair:
        """Create a user and sign them in. Raises Conflict on a duplicate email or name."""
        if not validate_role(role):
            raise MalformedInput(f"Unknown role: {role!r}")
        if self.users.exists_by_email(email):
            raise Conflict("Email already registered.")
        if self.users.exists_by_name(name):
            raise Conflict("Name already taken.")
        user = User(name=name, email=email, role=role, hashed_password=hash_password(password))
        try:
            user.id = self.users.create_user(user)
        except DuplicateRecord as exc:
            # Lost a race with a concurrent registration of the same email or name.
            raise Conflict("Email or name already registered.") from exc
        logger.info("Registered user_id=%s role=%s", user.id, user.role)
        return self.issuer.issue_session(user)

    def authenticate_user(self, email: str, password: str) -> User:
        """Return the user for a correct email/password pair or raise InvalidCredentials [C1]."""
        user = self.users.get_by_email(email)
        if user is None:
            equalize_timing(password)
            logger.info("Login failed: unknown email")
            raise InvalidCredentials(_USER_NOT_FOUND if self._reveal else None)
        if not verify_password(password, user.hashed_password):
            logger.info("Login failed: wrong password for user_id=%s", user.id)
            raise InvalidCredentials(_WRONG_PASSWORD if self._reveal else None)
        return user

    def login(self, email: str, password: str) -> TokenPair:
        user = self.authenticate_user(email, password)
        logger.info("Login succeeded for user_id=%s", user.id)
        return self.issuer.issue_session(user)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def refresh_token(self, refresh_token: str, claimed_user_id: Optional[int] = None) -> TokenPair:
        """Rotate refresh_token into a new pair [C3].

        claimed_user_id is the caller's authenticated user when the request
        carried a usable access token. Without one, the owner recorded on the
        row is the claimed identity.
        """
        if claimed_user_id is None:
            row = self.tokens.find_by_token(refresh_token)
            if row is None:
                raise NotFound()
            # A dead row must not reveal whether its owner still exists.
            if not row.is_valid(self._clock()):
                raise InvalidOrExpired()
            claimed_user_id = row.user_id
        user = self.users.get_by_id(claimed_user_id)
        if user is None:
            logger.warning("Refresh attempted for missing user_id=%s", claimed_user_id)
            raise Unauthorized("User no longer exists.")
        return self.rotator.rotate(refresh_token, user)

    def logout(self, refresh_token: str) -> None:
        """Revoke one refresh token. Silent for unknown tokens."""
        self.rotator.revoke_one(refresh_token)

    def logout_all(self, user_id: int) -> int:
        return self.rotator.revoke_all(user_id)

    def active_session_count(self, user_id: int) -> int:
        return self.tokens.count_active_for_user(user_id, self._clock())

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def validate_token(self, access_token: str) -> AuthContext:
        return self.gate.verify_token(access_token)

    def get_user_from_token(self, access_token: str) -> User:
        return self.get_profile(self.validate_token(access_token))

    def get_profile(self, context: AuthContext) -> User:
        """Return the directory's current record for an authenticated caller."""
        user = self.users.get_by_id(context.user_id)
        if user is None:
            raise Unauthorized("User no longer exists.")
        return user

    def list_users(self) -> list[User]:
        return self.users.list_users()

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def cleanup_expired_tokens(self) -> int:
        return self.janitor.purge_expired()

    def cleanup_revoked_tokens(self) -> int:
        return self.janitor.purge_revoked()

    def cleanup(self) -> JanitorReport:
        return self.janitor.run_once()
