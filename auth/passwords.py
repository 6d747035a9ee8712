"""
auth/passwords.py -- bcrypt password hashing with timing equalization.

Passwords: bcrypt used directly (no passlib wrapper). Its cost factor makes
brute-forcing low-entropy secrets expensive. Passwords are capped at 18
characters at the API layer, well below bcrypt's 72-byte truncation limit.

The _DUMMY_HASH constant lets login run bcrypt even when the email is unknown,
so response time does not reveal whether an account exists [C1].
"""

from __future__ import annotations

import bcrypt

BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password."""
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed stored hash counts as a mismatch rather than an error.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def is_password_hashed(value: str) -> bool:
    """Return True if value already looks like a bcrypt hash."""
    return len(value) >= 60 and value.startswith(BCRYPT_PREFIXES)


# Computed once at module load so the first failed login is not measurably
# slower than later ones [C1].
_DUMMY_HASH: str = hash_password("sessiongate_timing_dummy")


def equalize_timing(plain: str) -> None:
    """Burn one bcrypt comparison. Call on every login path that skips the real check."""
    verify_password(plain, _DUMMY_HASH)
