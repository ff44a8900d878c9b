"""Fetch layer - resilient HTTP client and response cache."""

from token_trust_tracker.fetch.cache import (
    CacheBackend,
    MemoryCache,
    RedisCache,
    build_cache_key,
    cached_fetch,
    parse_expires,
    ttl_seconds,
)
from token_trust_tracker.fetch.client import (
    FetchClient,
    RequestError,
    RetryPolicy,
    build_url,
    calculate_delay,
)

__all__ = [
    "CacheBackend",
    "FetchClient",
    "MemoryCache",
    "RedisCache",
    "RequestError",
    "RetryPolicy",
    "build_cache_key",
    "build_url",
    "cached_fetch",
    "calculate_delay",
    "parse_expires",
    "ttl_seconds",
]
