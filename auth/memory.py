"""
auth/memory.py -- In-process implementations of the auth/ports.py contracts.

Used by the unit tests and handy for local experiments. They behave like the
SQL stores in every way the core can observe: unique constraints raise
DuplicateRecord, revoke_token() is a compare-and-set, and transaction() either
commits every change or restores the previous state.

A re-entrant lock serializes all access. The lock lives here, in the fake,
because it stands in for the database's own isolation.
"""

from __future__ import annotations

import copy
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from typing import Optional

from auth.errors import DuplicateRecord
from auth.models import RefreshToken, User
from core.clock import to_iso, utcnow


class InMemoryUserStore:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._users: dict[int, User] = {}
        self._next_id = 1

    def create_user(self, user: User) -> int:
        with self._lock:
            if self.exists_by_email(user.email) or self.exists_by_name(user.name):
                raise DuplicateRecord()
            now = to_iso(utcnow())
            user_id = self._next_id
            self._next_id += 1
            self._users[user_id] = replace(user, id=user_id, created_at=now, updated_at=now)
            return user_id

    def get_by_id(self, user_id: int) -> Optional[User]:
        with self._lock:
            user = self._users.get(user_id)
            return replace(user) if user is not None else None

    def get_by_email(self, email: str) -> Optional[User]:
        with self._lock:
            return next((replace(u) for u in self._users.values() if u.email == email), None)

    def get_by_name(self, name: str) -> Optional[User]:
        with self._lock:
            return next((replace(u) for u in self._users.values() if u.name == name), None)

    def exists_by_email(self, email: str) -> bool:
        return self.get_by_email(email) is not None

    def exists_by_name(self, name: str) -> bool:
        return self.get_by_name(name) is not None

    def list_users(self) -> list[User]:
        with self._lock:
            return [replace(u) for _, u in sorted(self._users.items())]

    def has_users(self) -> bool:
        with self._lock:
            return bool(self._users)

    def ping(self) -> bool:
        return True

    def close(self) -> None:
        pass


class InMemoryRefreshTokenStore:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._rows: dict[str, RefreshToken] = {}
        self._next_id = 1

    def create(self, token: RefreshToken) -> RefreshToken:
        with self._lock:
            if token.token in self._rows:
                raise DuplicateRecord()
            now = utcnow()
            row = replace(token, id=self._next_id, created_at=now, updated_at=now)
            self._next_id += 1
            self._rows[row.token] = row
            return replace(row)

    def find_by_token(self, token: str, for_update: bool = False) -> Optional[RefreshToken]:
        with self._lock:
            row = self._rows.get(token)
            return replace(row) if row is not None else None

    def find_by_user(self, user_id: int) -> list[RefreshToken]:
        with self._lock:
            rows = [replace(r) for r in self._rows.values() if r.user_id == user_id]
        return sorted(rows, key=lambda r: r.id or 0, reverse=True)

    def revoke_token(self, token: str) -> bool:
        with self._lock:
            row = self._rows.get(token)
            if row is None or row.is_revoked:
                return False
            row.is_revoked = True
            row.updated_at = utcnow()
            return True

    def revoke_all_for_user(self, user_id: int) -> int:
        with self._lock:
            changed = 0
            for row in self._rows.values():
                if row.user_id == user_id and not row.is_revoked:
                    row.is_revoked = True
                    row.updated_at = utcnow()
                    changed += 1
            return changed

    def delete_expired(self, now) -> int:
        with self._lock:
            doomed = [t for t, r in self._rows.items() if r.is_expired(now)]
            for t in doomed:
                del self._rows[t]
            return len(doomed)

    def delete_revoked(self) -> int:
        with self._lock:
            doomed = [t for t, r in self._rows.items() if r.is_revoked]
            for t in doomed:
                del self._rows[t]
            return len(doomed)

    def count_active_for_user(self, user_id: int, now) -> int:
        with self._lock:
            return sum(1 for r in self._rows.values() if r.user_id == user_id and r.is_valid(now))

    @contextmanager
    def transaction(self) -> Iterator["InMemoryRefreshTokenStore"]:
        """Hold the lock for the whole block; restore the snapshot if it raises."""
        with self._lock:
            snapshot = copy.deepcopy(self._rows)
            next_id = self._next_id
            try:
                yield self
            except BaseException:
                self._rows = snapshot
                self._next_id = next_id
                raise

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)

    def close(self) -> None:
        pass
