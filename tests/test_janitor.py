"""
tests/test_janitor.py -- Unit tests for TokenJanitor and the periodic loop.

Covers:
  - purge_expired deletes only expired rows; purge_revoked only revoked rows
  - both purges are idempotent
  - run_once reports both counts
  - run_periodically survives a StoreFailure or any other error and stops on cancel
"""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from auth.errors import StoreFailure
from auth.janitor import JanitorReport, TokenJanitor, run_periodically
from auth.models import RefreshToken


@pytest.fixture
def janitor(token_store, clock) -> TokenJanitor:
    return TokenJanitor(token_store, clock)


def _row(clock, token: str, ttl: int, revoked: bool = False) -> RefreshToken:
    return RefreshToken(user_id=1, token=token, expires_at=clock.now + timedelta(seconds=ttl), is_revoked=revoked)


class TestPurge:
    def test_purge_expired(self, janitor: TokenJanitor, token_store, clock) -> None:
        token_store.create(_row(clock, "a" * 64, -10))
        token_store.create(_row(clock, "b" * 64, 0))
        token_store.create(_row(clock, "c" * 64, 100))
        assert janitor.purge_expired() == 1
        assert token_store.find_by_token("a" * 64) is None
        assert token_store.find_by_token("b" * 64) is not None, "expires_at == now is not expired"
        assert janitor.purge_expired() == 0

    def test_purge_revoked(self, janitor: TokenJanitor, token_store, clock) -> None:
        token_store.create(_row(clock, "a" * 64, 100, revoked=True))
        token_store.create(_row(clock, "b" * 64, 100))
        assert janitor.purge_revoked() == 1
        assert len(token_store) == 1
        assert janitor.purge_revoked() == 0

    def test_run_once(self, janitor: TokenJanitor, token_store, clock) -> None:
        token_store.create(_row(clock, "a" * 64, -1))
        token_store.create(_row(clock, "b" * 64, 100, revoked=True))
        token_store.create(_row(clock, "c" * 64, 100))
        assert janitor.run_once() == JanitorReport(expired_deleted=1, revoked_deleted=1)
        assert janitor.run_once() == JanitorReport(expired_deleted=0, revoked_deleted=0)
        assert len(token_store) == 1


class _FlakyJanitor:
    """Fails on the first run, succeeds afterwards."""

    def __init__(self) -> None:
        self.calls = 0

    def run_once(self) -> JanitorReport:
        self.calls += 1
        if self.calls == 1:
            raise StoreFailure()
        return JanitorReport(0, 0)


class TestRunPeriodically:
    def test_loop_survives_store_failure(self) -> None:
        flaky = _FlakyJanitor()

        async def scenario() -> None:
            task = asyncio.create_task(run_periodically(flaky, 0.01))
            while flaky.calls < 3:
                await asyncio.sleep(0.01)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())
        assert flaky.calls >= 3

    def test_loop_logs_unexpected_error_and_continues(self, caplog) -> None:
        class BrokenOnce(_FlakyJanitor):
            def run_once(self) -> JanitorReport:
                self.calls += 1
                if self.calls == 1:
                    raise RuntimeError("disk gone")
                return JanitorReport(0, 0)

        broken = BrokenOnce()

        async def scenario() -> None:
            task = asyncio.create_task(run_periodically(broken, 0.01))
            while broken.calls < 2:
                await asyncio.sleep(0.01)
            assert not task.done(), "loop must keep running after an unexpected error"
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        with caplog.at_level("ERROR", logger="sessiongate.auth.janitor"):
            asyncio.run(scenario())
        assert broken.calls >= 2
        assert any("Unexpected error" in r.getMessage() for r in caplog.records)
