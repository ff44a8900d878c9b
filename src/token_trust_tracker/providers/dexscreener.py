"""Dexscreener adapter: pair search and highest-liquidity pair selection."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from token_trust_tracker.fetch.client import RequestError
from token_trust_tracker.providers.base import ProviderClient, ProviderError
from token_trust_tracker.providers.models import DexScreenerData, DexScreenerPair

if TYPE_CHECKING:
    from token_trust_tracker.fetch.cache import Expires

logger = logging.getLogger(__name__)

DEXSCREENER_BASE_URL = "https://api.dexscreener.com/"


class DexscreenerClient(ProviderClient):
    """Client for the keyless Dexscreener search API."""

    namespace = "dexscreener"

    async def request(self, path: str, params: dict[str, Any], *, expires: Expires | None = None) -> Any:
        async def fetch() -> Any:
            return await self._fetch.get_json(DEXSCREENER_BASE_URL + path, params=params)

        return await self._cached(self._cache_key(path, params), expires, fetch)

    async def search(self, address: str, *, expires: Expires | None = None) -> DexScreenerData:
        """Search pairs for a token address.

        Failures and empty results yield an empty DexScreenerData rather than raising.
        """
        try:
            data = await self.request("latest/dex/search", {"q": address}, expires=expires)
            if not isinstance(data, dict) or not data.get("pairs"):
                raise ProviderError("No DexScreener data available")
            return DexScreenerData.from_dict(data)
        except (RequestError, ProviderError) as e:
            logger.warning("DexScreener search failed for %s: %s", address, e)
            return DexScreenerData()

    async def search_for_highest_liquidity_pair(
        self,
        address: str,
        *,
        expires: Expires | None = None,
    ) -> DexScreenerPair | None:
        data = await self.search(address, expires=expires)
        return data.highest_liquidity_pair()
