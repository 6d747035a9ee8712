"""
tests/test_cli.py -- Tests for the management commands in main.py.

Each test points the CLI at a throwaway SQLite file by patching the
get_settings() it imported.
"""

from __future__ import annotations

import sys
from datetime import timedelta

import pytest

import main as cli
from auth.models import RefreshToken
from auth.store import RefreshTokenStore, UserStore
from core.clock import utcnow
from core.config import get_settings


@pytest.fixture
def db_url(tmp_path, monkeypatch) -> str:
    url = f"sqlite:///{tmp_path / 'cli.db'}"
    settings = get_settings().model_copy(update={"database_url": url})
    monkeypatch.setattr(cli, "get_settings", lambda: settings)
    return url


def _run(monkeypatch, *argv: str) -> int:
    monkeypatch.setattr(sys, "argv", ["main.py", *argv])
    return cli.main()


class TestCreateUser:
    def test_creates_admin(self, db_url, monkeypatch, capsys) -> None:
        rc = _run(
            monkeypatch,
            "create-user",
            *("--name", "root1", "--email", "root1@example.com", "--password", "rootpw1", "--role", "admin"),
        )
        assert rc == 0
        assert "Created admin 'root1'" in capsys.readouterr().out
        users = UserStore(db_url=db_url)
        try:
            assert users.get_by_name("root1").role == "admin"
        finally:
            users.close()

    def test_duplicate(self, db_url, monkeypatch, capsys) -> None:
        args = ("create-user", "--name", "dup1", "--email", "dup1@example.com", "--password", "duppw1")
        assert _run(monkeypatch, *args) == 0
        assert _run(monkeypatch, *args) == 1
        assert "already exists" in capsys.readouterr().out

    def test_invalid_fields(self, db_url, monkeypatch, capsys) -> None:
        rc = _run(monkeypatch, "create-user", "--name", "no spaces", "--email", "x@example.com", "--password", "pw1234")
        assert rc == 2
        assert "name" in capsys.readouterr().out


class TestPurge:
    def test_purge_reports_counts(self, db_url, monkeypatch, capsys) -> None:
        tokens = RefreshTokenStore(db_url=db_url)
        try:
            now = utcnow()
            tokens.create(RefreshToken(user_id=1, token="a" * 64, expires_at=now - timedelta(hours=1)))
            tokens.create(RefreshToken(user_id=1, token="b" * 64, expires_at=now + timedelta(hours=1), is_revoked=True))
            tokens.create(RefreshToken(user_id=1, token="c" * 64, expires_at=now + timedelta(hours=1)))
        finally:
            tokens.close()

        assert _run(monkeypatch, "purge") == 0
        assert "Purged 1 expired and 1 revoked" in capsys.readouterr().out


def test_no_command_prints_help(monkeypatch, capsys) -> None:
    assert _run(monkeypatch) == 0
    assert "usage:" in capsys.readouterr().out
