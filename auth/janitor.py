"""
auth/janitor.py -- Purge dead refresh-token rows.

Both purges only ever delete rows that are already outside the valid set
(expired, or revoked), so they can run while issuance and rotation are in
flight without any locking, and running them twice in a row is harmless.

Triggered three ways: the background loop started by the API lifespan, the
`python main.py purge` command, and POST /api/v1/auth/maintenance/purge.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from auth.errors import StoreFailure
from auth.ports import RefreshTokenRepository
from core.clock import Clock, utcnow

logger = logging.getLogger("sessiongate.auth.janitor")


@dataclass(frozen=True)
class JanitorReport:
    expired_deleted: int
    revoked_deleted: int


class TokenJanitor:
    def __init__(self, tokens: RefreshTokenRepository, clock: Clock = utcnow) -> None:
        self._tokens = tokens
        self._clock = clock

    def purge_expired(self) -> int:
        count = self._tokens.delete_expired(self._clock())
        if count:
            logger.info("Purged %d expired refresh token(s)", count)
        return count

    def purge_revoked(self) -> int:
        count = self._tokens.delete_revoked()
        if count:
            logger.info("Purged %d revoked refresh token(s)", count)
        return count

    def run_once(self) -> JanitorReport:
        return JanitorReport(
            expired_deleted=self.purge_expired(),
            revoked_deleted=self.purge_revoked(),
        )


async def run_periodically(janitor: TokenJanitor, interval_seconds: float) -> None:
    """Run the janitor every interval_seconds until cancelled.

    Started as an asyncio task in the API lifespan. The store calls block, so
    each run goes to a worker thread. A store failure is logged and the loop
    waits for the next interval; any other error is logged the same way.
    CancelledError from task.cancel() during shutdown is not an Exception
    subclass; it propagates out of asyncio.sleep and ends the loop.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await asyncio.to_thread(janitor.run_once)
        except StoreFailure:
            logger.exception("Refresh-token purge failed; retrying in %.0fs", interval_seconds)
        except Exception:
            logger.exception("Unexpected error in refresh-token purge; retrying in %.0fs", interval_seconds)
