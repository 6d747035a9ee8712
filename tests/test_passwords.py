"""
tests/test_passwords.py -- Unit tests for bcrypt password helpers.
"""

from __future__ import annotations

from auth.passwords import equalize_timing, hash_password, is_password_hashed, verify_password


def test_hash_and_verify() -> None:
    hashed = hash_password("s3cret!")
    assert hashed != "s3cret!"
    assert is_password_hashed(hashed)
    assert verify_password("s3cret!", hashed)
    assert not verify_password("s3cret?", hashed)


def test_hashes_are_salted() -> None:
    assert hash_password("same") != hash_password("same")


def test_malformed_hash_is_a_mismatch() -> None:
    assert verify_password("anything", "not-a-bcrypt-hash") is False
    assert is_password_hashed("not-a-bcrypt-hash") is False


def test_equalize_timing_returns_nothing() -> None:
    assert equalize_timing("whatever") is None
