"""Birdeye adapter: prices, token overview/security/trade data, wallet holdings."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from token_trust_tracker.config import MissingConfigurationError
from token_trust_tracker.providers.base import ProviderClient, ProviderError
from token_trust_tracker.providers.models import (
    BTC_ADDRESS,
    ETH_ADDRESS,
    SOL_ADDRESS,
    Prices,
    TokenOverview,
    TokenSecurity,
    TokenTradeData,
    WalletPortfolio,
    WalletPortfolioItem,
)

if TYPE_CHECKING:
    from token_trust_tracker.config import ProviderSettings
    from token_trust_tracker.fetch.cache import CacheBackend, Expires
    from token_trust_tracker.fetch.client import FetchClient

logger = logging.getLogger(__name__)

BIRDEYE_BASE_URL = "https://public-api.birdeye.so/"
SOL_VALUE_QUANTUM = Decimal("0.000001")


class BirdeyeClient(ProviderClient):
    """Client for the Birdeye public API.

    Every response is wrapped as `{"success": bool, "data": ...}`; anything
    other than a successful envelope with data raises ProviderError.
    """

    namespace = "birdeye"

    def __init__(
        self,
        api_key: str,
        fetch: FetchClient,
        *,
        cache: CacheBackend | None = None,
        base_url: str = BIRDEYE_BASE_URL,
    ) -> None:
        if not api_key:
            raise MissingConfigurationError("BIRDEYE_API_KEY")
        super().__init__(fetch, cache=cache)
        self._api_key = api_key
        self._base_url = base_url

    @classmethod
    def from_settings(
        cls,
        settings: ProviderSettings,
        fetch: FetchClient,
        *,
        cache: CacheBackend | None = None,
    ) -> BirdeyeClient:
        if settings.birdeye_api_key is None:
            raise MissingConfigurationError("BIRDEYE_API_KEY")
        return cls(settings.birdeye_api_key.get_secret_value(), fetch, cache=cache)

    async def request(
        self,
        path: str,
        params: dict[str, Any],
        *,
        chain: str | None = None,
        expires: Expires | None = None,
    ) -> Any:
        """GET a Birdeye endpoint and unwrap its `data` member."""

        async def fetch() -> Any:
            headers = {"X-API-KEY": self._api_key}
            if chain:
                headers["x-chain"] = chain
            payload = await self._fetch.get_json(self._base_url + path, params=params, headers=headers)
            if not isinstance(payload, dict) or not payload.get("success") or payload.get("data") is None:
                raise ProviderError(f"Birdeye request failed: {path}")
            return payload["data"]

        return await self._cached(self._cache_key(path, params, scope=chain), expires, fetch)

    async def fetch_price(
        self,
        address: str,
        *,
        chain: str | None = None,
        expires: Expires | None = None,
    ) -> Decimal:
        data = await self.request("defi/price", {"address": address}, chain=chain, expires=expires)
        return Decimal(str(data["value"]))

    async def fetch_prices(self, *, expires: Expires | None = "5m") -> Prices:
        """Fetch SOL, BTC and ETH USD prices in one call."""
        data = await self.request(
            "defi/multi_price",
            {"list_address": ",".join((SOL_ADDRESS, ETH_ADDRESS, BTC_ADDRESS))},
            chain="solana",
            expires=expires,
        )
        return Prices.from_birdeye(data)

    async def fetch_token_overview(
        self,
        address: str,
        *,
        chain: str | None = "solana",
        expires: Expires | None = None,
    ) -> TokenOverview:
        data = await self.request("defi/token_overview", {"address": address}, chain=chain, expires=expires)
        return TokenOverview.from_dict(data)

    async def fetch_token_security(
        self,
        address: str,
        *,
        chain: str | None = "solana",
        expires: Expires | None = None,
    ) -> TokenSecurity:
        data = await self.request("defi/token_security", {"address": address}, chain=chain, expires=expires)
        return TokenSecurity.from_dict(data)

    async def fetch_token_trade_data(
        self,
        address: str,
        *,
        chain: str | None = "solana",
        expires: Expires | None = None,
    ) -> TokenTradeData:
        data = await self.request(
            "defi/v3/token/trade-data/single",
            {"address": address},
            chain=chain,
            expires=expires,
        )
        return TokenTradeData.from_dict({"address": address, **data})

    async def fetch_wallet_token_list(
        self,
        wallet: str,
        *,
        chain: str | None = "solana",
        expires: Expires | None = None,
    ) -> dict[str, Any]:
        return await self.request("v1/wallet/token_list", {"wallet": wallet}, chain=chain, expires=expires)

    async def fetch_portfolio_value(
        self,
        wallet: str,
        *,
        chain: str | None = "solana",
        expires: Expires | None = None,
    ) -> WalletPortfolio:
        """Value a wallet's holdings in USD and SOL, largest holding first.

        Raises:
            ProviderError: If the SOL price is unavailable.
        """
        token_list = await self.fetch_wallet_token_list(wallet, chain=chain, expires=expires)
        sol_price = await self.fetch_price(SOL_ADDRESS, chain=chain, expires=expires)
        if sol_price <= 0:
            raise ProviderError("SOL price unavailable for portfolio valuation")

        items = [_portfolio_item(raw, sol_price) for raw in token_list.get("items") or []]
        items.sort(key=lambda item: item.value_usd, reverse=True)

        total_usd = Decimal(str(token_list.get("totalUsd") or 0))
        return WalletPortfolio(
            total_usd=total_usd,
            total_sol=(total_usd / sol_price).quantize(SOL_VALUE_QUANTUM),
            items=tuple(items),
        )


def _portfolio_item(raw: dict[str, Any], sol_price: Decimal) -> WalletPortfolioItem:
    value_usd = Decimal(str(raw.get("valueUsd") or 0))
    return WalletPortfolioItem(
        address=str(raw.get("address", "")),
        name=raw.get("name") or "Unknown",
        symbol=raw.get("symbol") or "Unknown",
        decimals=int(raw.get("decimals") or 0),
        balance=Decimal(str(raw.get("balance") or 0)),
        ui_amount=Decimal(str(raw.get("uiAmount") or 0)),
        price_usd=Decimal(str(raw.get("priceUsd") or 0)),
        value_usd=value_usd,
        value_sol=(value_usd / sol_price).quantize(SOL_VALUE_QUANTUM),
    )
