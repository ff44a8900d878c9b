"""Shared plumbing for market-data adapters."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from token_trust_tracker.fetch.cache import CacheBackend, Expires, build_cache_key, cached_fetch
from token_trust_tracker.fetch.client import FetchClient

if TYPE_CHECKING:
    from token_trust_tracker.config import ProviderSettings

T = TypeVar("T")


class ProviderError(Exception):
    """Raised when a provider answers but the payload is unusable."""


@dataclass(frozen=True)
class ProviderTtls:
    """Cache lifetimes per kind of market data."""

    price: str = "5m"
    trade_data: str = "1m"
    security: str = "5m"
    overview: str = "1h"
    holders: str = "10m"
    pairs: str = "1m"
    portfolio: str = "5m"

    @classmethod
    def from_settings(cls, settings: ProviderSettings) -> ProviderTtls:
        return cls(
            price=settings.price_ttl,
            trade_data=settings.trade_data_ttl,
            security=settings.security_ttl,
            overview=settings.overview_ttl,
            holders=settings.holders_ttl,
            pairs=settings.pairs_ttl,
            portfolio=settings.portfolio_ttl,
        )


class ProviderClient:
    """Base class holding the fetch client and optional cache of an adapter."""

    namespace = ""

    def __init__(self, fetch: FetchClient, *, cache: CacheBackend | None = None) -> None:
        self._fetch = fetch
        self._cache = cache

    def _cache_key(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
        *,
        scope: str | None = None,
    ) -> str:
        namespace = f"{self.namespace}/{scope}" if scope else self.namespace
        return build_cache_key(namespace, path, params)

    async def _cached(self, key: str, expires: Expires | None, fetch: Callable[[], Awaitable[T]]) -> T:
        return await cached_fetch(self._cache, key, expires, fetch)
