"""Read-through cache for quiz definitions.

Values are stored JSON-serialized under `{prefix}:{key}` with a short TTL plus
jitter to spread expiries. Writers call `invalidate` after every create,
update or delete so readers never see stale correct-answers for longer than
the TTL even if an invalidation is lost.

The cache object is always constructed explicitly and injected into the code
that uses it. Two backends are provided:
- `RedisBackend`: production backend over `redis.asyncio`
- `MemoryBackend`: process-local dict with an injectable clock, used by tests
  and single-process dev runs
"""

from __future__ import annotations

import json
import logging
import random
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Tuple

import redis.asyncio as redis
from prometheus_client import Counter

DEFAULT_TTL_SEC = 300
JITTER_SEC = 5

CACHE_REQUESTS = Counter(
    "quiz_cache_requests_total",
    "Read-through cache lookups by key prefix and result",
    ["prefix", "result"],
)

log = logging.getLogger(__name__)


class CacheBackend(Protocol):
    """Minimal key/value contract the cache needs from its store."""

    async def get(self, key: str) -> Optional[str]: ...

    async def setex(self, key: str, ttl_sec: int, value: str) -> None: ...

    async def delete(self, *keys: str) -> None: ...


class RedisBackend:
    """Backend over a Redis server (db with decode_responses=True)."""

    def __init__(self, url: str) -> None:
        self._r = redis.from_url(url, decode_responses=True)

    async def get(self, key: str) -> Optional[str]:
        return await self._r.get(key)

    async def setex(self, key: str, ttl_sec: int, value: str) -> None:
        await self._r.setex(key, ttl_sec, value)

    async def delete(self, *keys: str) -> None:
        if keys:
            await self._r.delete(*keys)

    async def close(self) -> None:
        await self._r.aclose()


class MemoryBackend:
    """Dict-backed store; expiry is evaluated lazily against `clock()`."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._items: Dict[str, Tuple[float, str]] = {}

    async def get(self, key: str) -> Optional[str]:
        item = self._items.get(key)
        if item is None:
            return None
        expires_at, value = item
        if self._clock() >= expires_at:
            del self._items[key]
            return None
        return value

    async def setex(self, key: str, ttl_sec: int, value: str) -> None:
        self._items[key] = (self._clock() + ttl_sec, value)

    async def delete(self, *keys: str) -> None:
        for k in keys:
            self._items.pop(k, None)

    async def close(self) -> None:
        self._items.clear()


class ReadThroughCache:
    """
    Read-through cache for quiz payloads.
    Keys: {prefix}:{key}, e.g. quiz:<id> and quiz:all_published.
    """

    def __init__(
        self,
        backend: CacheBackend,
        prefix: str = "quiz",
        ttl_sec: int = DEFAULT_TTL_SEC,
        jitter_sec: int = JITTER_SEC,
    ) -> None:
        """Initialize the cache.

        Args:
            backend: Key/value store (Redis in production).
            prefix: Key namespace/prefix, e.g., "quiz".
            ttl_sec: Default base TTL in seconds.
            jitter_sec: Upper bound of the random jitter added to each TTL.
        """
        self._backend = backend
        self._prefix = prefix
        self._ttl = ttl_sec
        self._jitter = jitter_sec

    def _key(self, key: str) -> str:
        """Build a namespaced cache key."""
        return f"{self._prefix}:{key}"

    async def get_or_load(
        self,
        key: str,
        fetch_fn: Callable[[], Awaitable[Any]],
        ttl_sec: Optional[int] = None,
    ) -> Any:
        """Get a value from cache or fetch, set, and return it.

        On cache hit: returns the JSON-decoded value.
        On miss or JSON decode error: awaits `fetch_fn`; a `None` result is
        returned as-is and not cached (so a missing quiz is looked up again
        next time), anything else is stored with TTL + jitter.

        Args:
            key: Un-prefixed cache key.
            fetch_fn: Zero-arg coroutine function returning a JSON-serializable
                value (or None).
            ttl_sec: Base TTL override for this entry.

        Returns:
            The cached or freshly loaded value.
        """
        k = self._key(key)
        val = await self._backend.get(k)
        if val is not None:
            try:
                data = json.loads(val)
            except ValueError:
                log.warning("Corrupt cache entry %s; reloading", k)
            else:
                CACHE_REQUESTS.labels(self._prefix, "hit").inc()
                return data
        CACHE_REQUESTS.labels(self._prefix, "miss").inc()
        data = await fetch_fn()
        if data is None:
            return None
        payload = json.dumps(data, separators=(",", ":"), default=str)
        expiry = (ttl_sec or self._ttl) + (random.randint(0, self._jitter) if self._jitter else 0)
        await self._backend.setex(k, expiry, payload)
        return data

    async def invalidate(self, *keys: str) -> None:
        """Drop cached entries for the given un-prefixed keys."""
        await self._backend.delete(*(self._key(k) for k in keys))
