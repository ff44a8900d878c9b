"""Helius adapter: token holder list via paginated `getTokenAccounts`."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from token_trust_tracker.config import MissingConfigurationError
from token_trust_tracker.fetch.client import build_url
from token_trust_tracker.providers.base import ProviderClient, ProviderError
from token_trust_tracker.providers.models import HolderData

if TYPE_CHECKING:
    from token_trust_tracker.config import ProviderSettings
    from token_trust_tracker.fetch.cache import CacheBackend, Expires
    from token_trust_tracker.fetch.client import FetchClient

logger = logging.getLogger(__name__)

HELIUS_RPC_URL = "https://mainnet.helius-rpc.com/"
DEFAULT_PAGE_LIMIT = 1000
DEFAULT_MAX_PAGES = 2


class HeliusClient(ProviderClient):
    """Client for the Helius DAS RPC."""

    namespace = "helius"

    def __init__(
        self,
        api_key: str,
        fetch: FetchClient,
        *,
        cache: CacheBackend | None = None,
        max_pages: int = DEFAULT_MAX_PAGES,
        page_limit: int = DEFAULT_PAGE_LIMIT,
        rpc_url: str = HELIUS_RPC_URL,
    ) -> None:
        if not api_key:
            raise MissingConfigurationError("HELIUS_API_KEY")
        super().__init__(fetch, cache=cache)
        self._url = build_url(rpc_url, {"api-key": api_key})
        self._max_pages = max_pages
        self._page_limit = page_limit

    @classmethod
    def from_settings(
        cls,
        settings: ProviderSettings,
        fetch: FetchClient,
        *,
        cache: CacheBackend | None = None,
    ) -> HeliusClient:
        if settings.helius_api_key is None:
            raise MissingConfigurationError("HELIUS_API_KEY")
        return cls(
            settings.helius_api_key.get_secret_value(),
            fetch,
            cache=cache,
            max_pages=settings.helius_max_pages,
        )

    async def fetch_holder_list(self, mint: str, *, expires: Expires | None = None) -> list[HolderData]:
        """Return one row per owner with the summed balance of all its token accounts.

        Raises:
            ProviderError: If any page fails.
        """
        try:
            rows = await self._cached(f"{self.namespace}/token-holders/{mint}", expires, lambda: self._collect(mint))
        except Exception as e:
            logger.error("Error fetching holder list from Helius for %s: %s", mint, e)
            raise ProviderError("Failed to fetch holder list from Helius.") from e
        return [HolderData.from_dict(row) for row in rows]

    async def _collect(self, mint: str) -> list[dict[str, str]]:
        balances: dict[str, Decimal] = {}
        cursor: str | None = None

        for page in range(1, self._max_pages + 1):
            params: dict[str, Any] = {"limit": self._page_limit, "displayOptions": {}, "mint": mint}
            if cursor is not None:
                params["cursor"] = cursor

            result = await self._fetch.json_rpc(self._url, "getTokenAccounts", params) or {}
            accounts = result.get("token_accounts") or []
            if not accounts:
                logger.debug("No more holders for %s after %d pages", mint, page - 1)
                break

            for account in accounts:
                owner = account["owner"]
                balances[owner] = balances.get(owner, Decimal("0")) + Decimal(str(account.get("amount") or 0))

            cursor = result.get("cursor")
            if cursor is None:
                break

        logger.debug("Fetched %d unique holders for %s", len(balances), mint)
        return [HolderData(address=owner, balance=balance).to_dict() for owner, balance in balances.items()]
