"""Coingecko adapter: reference asset prices."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from token_trust_tracker.config import MissingConfigurationError
from token_trust_tracker.providers.base import ProviderClient
from token_trust_tracker.providers.models import Prices

if TYPE_CHECKING:
    from token_trust_tracker.config import ProviderSettings
    from token_trust_tracker.fetch.cache import CacheBackend, Expires
    from token_trust_tracker.fetch.client import FetchClient

COINGECKO_BASE_URL = "https://api.coingecko.com/api/v3/"


class CoingeckoClient(ProviderClient):
    namespace = "coingecko"

    def __init__(self, api_key: str, fetch: FetchClient, *, cache: CacheBackend | None = None) -> None:
        if not api_key:
            raise MissingConfigurationError("COINGECKO_API_KEY")
        super().__init__(fetch, cache=cache)
        self._api_key = api_key

    @classmethod
    def from_settings(
        cls,
        settings: ProviderSettings,
        fetch: FetchClient,
        *,
        cache: CacheBackend | None = None,
    ) -> CoingeckoClient:
        if settings.coingecko_api_key is None:
            raise MissingConfigurationError("COINGECKO_API_KEY")
        return cls(settings.coingecko_api_key.get_secret_value(), fetch, cache=cache)

    async def request(self, path: str, params: dict[str, Any], *, expires: Expires | None = None) -> Any:
        async def fetch() -> Any:
            return await self._fetch.get_json(
                COINGECKO_BASE_URL + path,
                params=params,
                headers={"x-cg-demo-api-key": self._api_key},
            )

        return await self._cached(self._cache_key(path, params), expires, fetch)

    async def fetch_prices(self, *, expires: Expires | None = "5m") -> Prices:
        data = await self.request(
            "simple/price",
            {"ids": "solana,bitcoin,ethereum", "vs_currencies": "usd"},
            expires=expires,
        )
        return Prices.from_coingecko(data)
