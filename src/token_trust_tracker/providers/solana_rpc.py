"""Solana JSON-RPC adapter for wallet token balances."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from token_trust_tracker.providers.models import SOL_ADDRESS

if TYPE_CHECKING:
    from token_trust_tracker.fetch.client import FetchClient

logger = logging.getLogger(__name__)


class SolanaRpcClient:
    """Minimal Solana RPC client built on FetchClient.json_rpc."""

    def __init__(self, rpc_url: str, fetch: FetchClient) -> None:
        self._rpc_url = rpc_url
        self._fetch = fetch

    async def get_token_balance(self, owner: str, mint: str = SOL_ADDRESS) -> float:
        """Sum the raw token amount held by `owner` across its accounts for `mint`."""
        result = await self._fetch.json_rpc(
            self._rpc_url,
            "getTokenAccountsByOwner",
            [owner, {"mint": mint}, {"encoding": "jsonParsed"}],
        )
        total = 0.0
        for account in (result or {}).get("value") or []:
            token_amount = account["account"]["data"]["parsed"]["info"]["tokenAmount"]
            total += float(token_amount["amount"])
        return total
