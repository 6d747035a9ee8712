"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper. UserStore and RefreshTokenStore are the
repositories; _row_to_user / _row_to_refresh_token are the mappers. Service
code never touches SQL directly. Both classes satisfy the Protocols in
auth/ports.py.

Security:
  All queries use bound parameters. No f-strings in SQL.

Transactions:
  Every call outside transaction() runs in its own engine.begin() block and
  commits on return. Inside transaction() all calls share one connection and
  commit (or roll back) together. revoke_token() is a conditional UPDATE
  (WHERE is_revoked = 0) whose rowcount tells the caller whether it won, so
  concurrent rotations of one token cannot both succeed even on SQLite, where
  SELECT ... FOR UPDATE is a no-op.

Timestamps:
  Stored as fixed-width ISO 8601 strings (core.clock.to_iso), which makes the
  "expires_at < now" comparison in SQL a plain string comparison.

Errors:
  SQLAlchemyError is translated to StoreFailure at this boundary (IntegrityError
  to DuplicateRecord) so the core never imports sqlalchemy.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from typing import Optional

from sqlalchemy import (
    Column,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    event,
    func,
    select,
    text,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import DuplicateRecord, StoreFailure
from auth.models import RefreshToken, User
from core.clock import from_iso, to_iso, utcnow

logger = logging.getLogger("sessiongate.auth.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(50), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", String(100), nullable=False),
    Column("role", String(10), nullable=False, server_default="user"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_refresh_tokens = Table(
    "refresh_tokens",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False),
    Column("token", String(255), nullable=False, unique=True),
    Column("expires_at", String(32), nullable=False),
    Column("is_revoked", Integer, nullable=False, server_default="0"),  # boolean stored as 0/1
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Index("ix_refresh_tokens_user_id", "user_id"),
)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def create_store_engine(db_url: str) -> Engine:
    """Create an engine suitable for sharing between UserStore and RefreshTokenStore.

    SQLite needs check_same_thread=False because FastAPI runs sync handlers in
    a threadpool and the pool hands connections to whichever thread asks.
    """
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    metadata.create_all(engine)
    return engine


class _SQLStore:
    """Connection handling shared by both repositories."""

    def __init__(self, db_url: Optional[str] = None, engine: Optional[Engine] = None) -> None:
        if engine is None:
            if db_url is None:
                raise ValueError("Pass db_url (usually Settings.database_url) or a shared engine")
            engine = create_store_engine(db_url)
        self.engine: Engine = engine
        self._conn: Optional[Connection] = None

    @contextmanager
    def _connect(self) -> Iterator[Connection]:
        if self._conn is not None:
            yield self._conn
            return
        try:
            with self.engine.begin() as conn:
                yield conn
        except IntegrityError as exc:
            raise DuplicateRecord() from exc
        except SQLAlchemyError as exc:
            logger.error("Store operation failed: %s", exc.__class__.__name__)
            raise StoreFailure() from exc

    @contextmanager
    def transaction(self):
        """Yield a copy of this store bound to one connection and one transaction.

        Nested calls reuse the outer transaction.
        """
        if self._conn is not None:
            yield self
            return
        with self._connect() as conn:
            bound = copy.copy(self)
            bound._conn = conn
            yield bound

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserStore(_SQLStore):
    """Repository for User entities (the identity directory).

    Usage:
        store = UserStore(db_url=get_settings().database_url)
        uid = store.create_user(User(name="alice", email="a@example.com", hashed_password=hash_password("pw1234")))
        user = store.get_by_email("a@example.com")
        store.close()
    """

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises DuplicateRecord if the name or email already exists. Callers
        should treat that as a registration conflict: a concurrent request can
        pass the exists_by_* checks and still lose the insert.
        """
        now = to_iso(utcnow())
        with self._connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    name=user.name,
                    email=user.email,
                    hashed_password=user.hashed_password,
                    role=user.role,
                    created_at=now,
                    updated_at=now,
                )
            )
            return result.inserted_primary_key[0]

    def get_by_id(self, user_id: int) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> Optional[User]:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        with self._connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_name(self, name: str) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute(_users.select().where(_users.c.name == name)).fetchone()
        return _row_to_user(row) if row is not None else None

    def exists_by_email(self, email: str) -> bool:
        with self._connect() as conn:
            count = conn.execute(select(func.count()).select_from(_users).where(_users.c.email == email)).scalar()
        return (count or 0) > 0

    def exists_by_name(self, name: str) -> bool:
        with self._connect() as conn:
            count = conn.execute(select(func.count()).select_from(_users).where(_users.c.name == name)).scalar()
        return (count or 0) > 0

    def list_users(self) -> list[User]:
        """Return all users ordered by id. Admin-only operation."""
        with self._connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.id)).fetchall()
        return [_row_to_user(r) for r in rows]

    def has_users(self) -> bool:
        with self._connect() as conn:
            result = conn.execute(text("SELECT COUNT(*) FROM users")).scalar()
        return (result or 0) > 0

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by /health."""
        try:
            with self._connect() as conn:
                conn.execute(text("SELECT 1"))
        except StoreFailure:
            return False
        return True


# ---------------------------------------------------------------------------
# Refresh tokens
# ---------------------------------------------------------------------------


class RefreshTokenStore(_SQLStore):
    """Repository for RefreshToken rows.

    Usage:
        tokens = RefreshTokenStore(engine=user_store.engine)
        with tokens.transaction() as tx:
            row = tx.find_by_token(raw, for_update=True)
            if row and row.is_valid() and tx.revoke_token(raw):
                tx.create(new_row)
    """

    def create(self, token: RefreshToken) -> RefreshToken:
        now = utcnow()
        with self._connect() as conn:
            result = conn.execute(
                _refresh_tokens.insert().values(
                    user_id=token.user_id,
                    token=token.token,
                    expires_at=to_iso(token.expires_at),
                    is_revoked=1 if token.is_revoked else 0,
                    created_at=to_iso(now),
                    updated_at=to_iso(now),
                )
            )
            new_id = result.inserted_primary_key[0]
        return replace(token, id=new_id, created_at=now, updated_at=now)

    def find_by_token(self, token: str, for_update: bool = False) -> Optional[RefreshToken]:
        stmt = _refresh_tokens.select().where(_refresh_tokens.c.token == token)
        if for_update:
            stmt = stmt.with_for_update()
        with self._connect() as conn:
            row = conn.execute(stmt).fetchone()
        return _row_to_refresh_token(row) if row is not None else None

    def find_by_user(self, user_id: int) -> list[RefreshToken]:
        with self._connect() as conn:
            rows = conn.execute(
                _refresh_tokens.select()
                .where(_refresh_tokens.c.user_id == user_id)
                .order_by(_refresh_tokens.c.created_at.desc(), _refresh_tokens.c.id.desc())
            ).fetchall()
        return [_row_to_refresh_token(r) for r in rows]

    def revoke_token(self, token: str) -> bool:
        """Revoke one token. Returns True only if this call flipped is_revoked.

        The is_revoked = 0 condition makes this a compare-and-set: of two
        concurrent callers, exactly one sees rowcount 1.
        """
        with self._connect() as conn:
            result = conn.execute(
                _refresh_tokens.update()
                .where((_refresh_tokens.c.token == token) & (_refresh_tokens.c.is_revoked == 0))
                .values(is_revoked=1, updated_at=to_iso(utcnow()))
            )
        return result.rowcount > 0

    def revoke_all_for_user(self, user_id: int) -> int:
        with self._connect() as conn:
            result = conn.execute(
                _refresh_tokens.update()
                .where((_refresh_tokens.c.user_id == user_id) & (_refresh_tokens.c.is_revoked == 0))
                .values(is_revoked=1, updated_at=to_iso(utcnow()))
            )
        return result.rowcount

    def delete_expired(self, now) -> int:
        with self._connect() as conn:
            result = conn.execute(_refresh_tokens.delete().where(_refresh_tokens.c.expires_at < to_iso(now)))
        return result.rowcount

    def delete_revoked(self) -> int:
        with self._connect() as conn:
            result = conn.execute(_refresh_tokens.delete().where(_refresh_tokens.c.is_revoked == 1))
        return result.rowcount

    def count_active_for_user(self, user_id: int, now) -> int:
        # Active = unrevoked and not yet expired (expiry is strict, so == now is active).
        with self._connect() as conn:
            count = conn.execute(
                select(func.count())
                .select_from(_refresh_tokens)
                .where(
                    (_refresh_tokens.c.user_id == user_id)
                    & (_refresh_tokens.c.is_revoked == 0)
                    & (_refresh_tokens.c.expires_at >= to_iso(now))
                )
            ).scalar()
        return count or 0


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        hashed_password=row.hashed_password,
        role=row.role,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_refresh_token(row) -> RefreshToken:
    return RefreshToken(
        id=row.id,
        user_id=row.user_id,
        token=row.token,
        expires_at=from_iso(row.expires_at),
        is_revoked=bool(row.is_revoked),
        created_at=from_iso(row.created_at),
        updated_at=from_iso(row.updated_at),
    )
