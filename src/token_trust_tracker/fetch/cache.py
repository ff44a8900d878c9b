"""Response cache sidecar.

Caching wraps a fetch rather than living inside the transport: callers pass a
key, an expiry and a zero-argument coroutine factory to `cached_fetch`. Cache
reads and writes are best-effort; a broken cache only costs freshness.
"""

from __future__ import annotations

import json
import logging
import re
import time
from collections.abc import Awaitable, Callable, Mapping
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any, Protocol, TypeVar

from token_trust_tracker.fetch.client import build_url

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_REDIS_KEY_PREFIX = "trust:cache:"

# str durations ("5m"), timedelta durations, or an explicit epoch-ms expiry.
Expires = str | timedelta | int | float

_DURATION_PATTERN = re.compile(r"^(\d+)([a-z]+)$", re.IGNORECASE)
_UNIT_SECONDS = {
    "ms": 0.001,
    "s": 1.0,
    "m": 60.0,
    "h": 60.0 * 60,
    "d": 24 * 60.0 * 60,
}


def parse_expires(expires: str) -> float:
    """Parse a duration such as "30s", "5m" or "1h" into seconds.

    Unparseable strings and unknown units yield 0, which disables caching.
    """
    match = _DURATION_PATTERN.match(expires.strip())
    if not match:
        return 0.0
    value, unit = match.groups()
    return _UNIT_SECONDS.get(unit.lower(), 0.0) * int(value)


def ttl_seconds(expires: Expires, *, now: datetime | None = None) -> float:
    """Resolve an expiry into a remaining lifetime in seconds."""
    if isinstance(expires, timedelta):
        return max(0.0, expires.total_seconds())
    if isinstance(expires, str):
        return parse_expires(expires)
    now_ms = (now or datetime.now(UTC)).timestamp() * 1000
    return max(0.0, (float(expires) - now_ms) / 1000)


def build_cache_key(namespace: str, path: str, params: Mapping[str, Any] | None = None) -> str:
    """Key a request by namespace, path and sorted query parameters."""
    normalized = dict(sorted(params.items())) if params else None
    return "/".join(part for part in (namespace, build_url(path.lstrip("/"), normalized)) if part)


class CacheBackend(Protocol):
    """Minimal async key-value store with per-entry TTL."""

    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any, ttl_seconds: float) -> None: ...

    async def delete(self, key: str) -> None: ...


class MemoryCache:
    """In-process TTL cache used when Redis is not configured.

    Expired entries are dropped when read and on every write.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: dict[str, tuple[float, Any]] = {}
        self._clock = clock

    async def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        now = self._clock()
        self._prune(now)
        self._entries[key] = (now + ttl_seconds, value)

    def _prune(self, now: float) -> None:
        expired = [key for key, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)


class RedisCache:
    """Redis-backed cache storing JSON-encoded values with a PX expiry."""

    def __init__(self, redis: Redis, *, key_prefix: str = DEFAULT_REDIS_KEY_PREFIX) -> None:
        self._redis = redis
        self._key_prefix = key_prefix

    def _key(self, key: str) -> str:
        return f"{self._key_prefix}{key}"

    async def get(self, key: str) -> Any | None:
        raw = await self._redis.get(self._key(key))
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode()
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        await self._redis.set(
            self._key(key),
            json.dumps(value),
            px=max(1, int(ttl_seconds * 1000)),
        )

    async def delete(self, key: str) -> None:
        await self._redis.delete(self._key(key))


async def cached_fetch(
    cache: CacheBackend | None,
    key: str,
    expires: Expires | None,
    fetch: Callable[[], Awaitable[T]],
) -> T:
    """Return the cached value for `key`, or run `fetch` and store its result.

    With no cache or no expiry the fetch always runs and nothing is stored.
    Cache failures are logged and never propagate.
    """
    if cache is None or expires is None:
        return await fetch()

    try:
        cached = await cache.get(key)
    except Exception as e:
        logger.warning("Cache get failed for %s: %s", key, e)
        cached = None
    if cached is not None:
        logger.debug("Cache hit for %s", key)
        return cached

    value = await fetch()

    ttl = ttl_seconds(expires)
    if ttl > 0 and value is not None:
        try:
            await cache.set(key, value, ttl)
        except Exception as e:
            logger.warning("Cache set failed for %s: %s", key, e)
    return value
