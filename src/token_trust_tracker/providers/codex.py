"""Codex GraphQL adapter: token metadata, including the scam flag."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from token_trust_tracker.config import MissingConfigurationError
from token_trust_tracker.providers.base import ProviderClient, ProviderError
from token_trust_tracker.providers.models import SOLANA_NETWORK_ID

if TYPE_CHECKING:
    from token_trust_tracker.config import ProviderSettings
    from token_trust_tracker.fetch.cache import CacheBackend, Expires
    from token_trust_tracker.fetch.client import FetchClient

CODEX_GRAPHQL_URL = "https://graph.codex.io/graphql"

TOKEN_QUERY = """
query Token($address: String!, $networkId: Int!) {
  token(input: { address: $address, networkId: $networkId }) {
    id
    address
    decimals
    name
    symbol
    totalSupply
    isScam
    info {
      circulatingSupply
    }
  }
}
"""


@dataclass(frozen=True)
class CodexToken:
    address: str
    name: str
    symbol: str
    decimals: int
    total_supply: Decimal
    is_scam: bool
    circulating_supply: Decimal | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CodexToken:
        info = data.get("info") or {}
        circulating = info.get("circulatingSupply")
        return cls(
            address=str(data.get("address", "")),
            name=str(data.get("name") or ""),
            symbol=str(data.get("symbol") or ""),
            decimals=int(data.get("decimals") or 0),
            total_supply=Decimal(str(data.get("totalSupply") or 0)),
            is_scam=bool(data.get("isScam")),
            circulating_supply=Decimal(str(circulating)) if circulating is not None else None,
        )


class CodexClient(ProviderClient):
    namespace = "codex"

    def __init__(
        self,
        api_key: str,
        fetch: FetchClient,
        *,
        cache: CacheBackend | None = None,
        url: str = CODEX_GRAPHQL_URL,
    ) -> None:
        if not api_key:
            raise MissingConfigurationError("CODEX_API_KEY")
        super().__init__(fetch, cache=cache)
        self._api_key = api_key
        self._url = url

    @classmethod
    def from_settings(
        cls,
        settings: ProviderSettings,
        fetch: FetchClient,
        *,
        cache: CacheBackend | None = None,
    ) -> CodexClient:
        if settings.codex_api_key is None:
            raise MissingConfigurationError("CODEX_API_KEY")
        return cls(settings.codex_api_key.get_secret_value(), fetch, cache=cache)

    async def request(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        data = await self._fetch.graphql(self._url, query, variables, headers={"Authorization": self._api_key})
        return data or {}

    async def fetch_token(
        self,
        address: str,
        network_id: int = SOLANA_NETWORK_ID,
        *,
        expires: Expires | None = "1h",
    ) -> CodexToken:
        """Fetch token metadata.

        Raises:
            ProviderError: If Codex has no record of the token.
        """
        variables = {"address": address, "networkId": network_id}

        async def fetch() -> Any:
            return (await self.request(TOKEN_QUERY, variables)).get("token")

        token = await self._cached(f"{self.namespace}/token/{network_id}/{address}", expires, fetch)
        if not token:
            raise ProviderError(f"No data returned for token {address}")
        return CodexToken.from_dict(token)
