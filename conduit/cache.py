from __future__ import annotations

import json
import logging

import redis.asyncio as redis

from conduit.config import settings

logger = logging.getLogger(__name__)


class CacheManager:
    """
    Cache-aside manager backed by Redis.

    Only caller-independent data is cached (article records and listing
    pages); per-caller flags such as ``favorited`` are computed on the way
    out.  Every public method tolerates Redis being unavailable: reads
    miss and writes are skipped.
    """

    def __init__(self) -> None:
        self._redis: redis.Redis | None = None
        self._hits: int = 0
        self._misses: int = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the connection pool.  Called once at application startup."""
        self._redis = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await self._redis.ping()
            logger.info("Redis connected: %s", settings.REDIS_URL)
        except (redis.RedisError, OSError) as exc:
            logger.warning("Redis ping failed, cache disabled: %s", exc)
            await self._redis.aclose()
            self._redis = None

    async def disconnect(self) -> None:
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    @property
    def enabled(self) -> bool:
        return self._redis is not None

    # ------------------------------------------------------------------
    # Core cache operations
    # ------------------------------------------------------------------

    async def get(self, key: str) -> dict | list | None:
        """Return the cached value for *key*, or None on a miss / error."""
        if not self._redis:
            self._misses += 1
            return None
        try:
            data = await self._redis.get(key)
        except redis.RedisError as exc:
            logger.debug("Cache GET error for key=%r: %s", key, exc)
            self._misses += 1
            return None
        if data is None:
            self._misses += 1
            return None
        self._hits += 1
        return json.loads(data)

    async def set(self, key: str, value: dict | list, ttl: int | None = None) -> None:
        if not self._redis:
            return
        try:
            await self._redis.set(key, json.dumps(value, default=str), ex=ttl)
        except redis.RedisError as exc:
            logger.debug("Cache SET error for key=%r: %s", key, exc)

    async def delete_pattern(self, pattern: str) -> None:
        """Delete all keys matching *pattern* using SCAN (never KEYS)."""
        if not self._redis:
            return
        try:
            keys = [key async for key in self._redis.scan_iter(match=pattern)]
            if keys:
                await self._redis.delete(*keys)
                logger.debug("Cache invalidated %d key(s) matching %r", len(keys), pattern)
        except redis.RedisError as exc:
            logger.debug("Cache DELETE_PATTERN error for pattern=%r: %s", pattern, exc)

    # ------------------------------------------------------------------
    # Generations
    # ------------------------------------------------------------------
    #
    # Entries are written under "<prefix>:<generation>".  Invalidation
    # bumps the generation before purging, so a reader that fetched from
    # the database before the bump writes its (stale) value under a
    # generation nobody reads any more.

    async def generation(self, name: str) -> int:
        if not self._redis:
            return 0
        try:
            value = await self._redis.get(f"gen:{name}")
        except redis.RedisError as exc:
            logger.debug("Cache generation read error for %r: %s", name, exc)
            return 0
        return int(value) if value is not None else 0

    async def bump(self, name: str) -> None:
        if not self._redis:
            return
        key = f"gen:{name}"
        try:
            await self._redis.incr(key)
            # Outlives every entry written under the previous generation.
            ttl = 2 * max(settings.CACHE_TTL_DETAIL, settings.CACHE_TTL_LIST)
            await self._redis.expire(key, ttl)
        except redis.RedisError as exc:
            logger.debug("Cache generation bump error for %r: %s", name, exc)

    async def detail_key(self, slug: str) -> str:
        generation = await self.generation(f"articles:detail:{slug}")
        return f"articles:detail:{slug}:{generation}"

    async def list_key(self, suffix: str) -> str:
        generation = await self.generation("articles:list")
        return f"articles:list:{generation}:{suffix}"

    # ------------------------------------------------------------------
    # Domain-level invalidation helpers
    # ------------------------------------------------------------------

    async def invalidate_articles(self, slugs: set[str] | None = None) -> None:
        """
        Drop every cached listing page and the detail entries of *slugs*.

        Listing pages are always purged: any article write can move items
        between pages.
        """
        await self.bump("articles:list")
        await self.delete_pattern("articles:list:*")
        for slug in slugs or ():
            await self.bump(f"articles:detail:{slug}")
            await self.delete_pattern(f"articles:detail:{slug}:*")

    @property
    def stats(self) -> dict:
        total = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }


# Module-level singleton shared across all request handlers.
cache = CacheManager()
