"""
Per-article mutual exclusion.

Mutations of one article (update, delete, favorite toggles, comment
writes) run one at a time per slug within this process; unrelated slugs
never contend.  Entries are dropped once no task holds or waits on them,
so the registry only ever contains slugs that are in use.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from conduit.config import settings
from conduit.errors import ServiceUnavailable

logger = logging.getLogger(__name__)


class SlugLocks:
    def __init__(self, timeout: float | None = None) -> None:
        self._timeout = timeout
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @property
    def timeout(self) -> float:
        return settings.LOCK_TIMEOUT_SECONDS if self._timeout is None else self._timeout

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, slug: str) -> AsyncIterator[None]:
        """
        Hold the lock for *slug* for the duration of the block.

        Raises ``ServiceUnavailable`` if the lock cannot be acquired within
        the configured timeout.
        """
        lock = self._locks.setdefault(slug, asyncio.Lock())
        self._users[slug] = self._users.get(slug, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self.timeout)
            except asyncio.TimeoutError:
                logger.warning("Timed out waiting for article lock slug=%r", slug)
                raise ServiceUnavailable("article-lock") from None
            try:
                yield
            finally:
                lock.release()
        finally:
            self._users[slug] -= 1
            if self._users[slug] == 0:
                del self._users[slug]
                del self._locks[slug]


# Module-level registry shared by all request handlers.
slug_locks = SlugLocks()
