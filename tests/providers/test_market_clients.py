"""Tests for the HTTP market-data adapters."""

from __future__ import annotations

import json
from decimal import Decimal

import httpx
import pytest

from token_trust_tracker.config import MissingConfigurationError
from token_trust_tracker.fetch import FetchClient, MemoryCache, RetryPolicy
from token_trust_tracker.providers import (
    BTC_ADDRESS,
    ETH_ADDRESS,
    SOL_ADDRESS,
    BirdeyeClient,
    CodexClient,
    CoingeckoClient,
    DexscreenerClient,
    HeliusClient,
    ProviderError,
    SolanaRpcClient,
)

TOKEN = "TokenMint1111111111111111111111111111111111"


async def no_sleep(_delay: float) -> None:
    return None


def make_fetch(handler) -> FetchClient:
    return FetchClient(
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        retry_policy=RetryPolicy(max_retries=1),
        sleep=no_sleep,
    )


def birdeye_ok(data) -> httpx.Response:
    return httpx.Response(200, json={"success": True, "data": data})


class TestBirdeyeClient:
    """Tests for the Birdeye adapter."""

    def test_requires_api_key(self) -> None:
        with pytest.raises(MissingConfigurationError):
            BirdeyeClient("", make_fetch(lambda request: httpx.Response(200)))

    @pytest.mark.asyncio
    async def test_request_sends_headers_and_unwraps_data(self) -> None:
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["key"] = request.headers.get("X-API-KEY")
            seen["chain"] = request.headers.get("x-chain")
            seen["path"] = request.url.path
            return birdeye_ok({"value": 1.5})

        client = BirdeyeClient("k", make_fetch(handler))
        assert await client.fetch_price(TOKEN, chain="solana") == Decimal("1.5")
        assert seen == {"key": "k", "chain": "solana", "path": "/defi/price"}

    @pytest.mark.asyncio
    async def test_unsuccessful_envelope_raises(self) -> None:
        client = BirdeyeClient("k", make_fetch(lambda request: httpx.Response(200, json={"success": False})))
        with pytest.raises(ProviderError):
            await client.fetch_token_security(TOKEN)

    @pytest.mark.asyncio
    async def test_fetch_prices(self) -> None:
        data = {
            SOL_ADDRESS: {"value": 150},
            BTC_ADDRESS: {"value": 60000},
            ETH_ADDRESS: {"value": 3000},
        }
        client = BirdeyeClient("k", make_fetch(lambda request: birdeye_ok(data)))
        prices = await client.fetch_prices()
        assert prices.solana == Decimal("150")
        assert prices.bitcoin == Decimal("60000")
        assert prices.ethereum == Decimal("3000")

    @pytest.mark.asyncio
    async def test_fetch_prices_is_cached(self) -> None:
        calls = []
        data = {SOL_ADDRESS: {"value": 1}, BTC_ADDRESS: {"value": 2}, ETH_ADDRESS: {"value": 3}}

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return birdeye_ok(data)

        client = BirdeyeClient("k", make_fetch(handler), cache=MemoryCache())
        await client.fetch_prices()
        await client.fetch_prices()
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_trade_data_parsing(self) -> None:
        data = {
            "price": 0.5,
            "holder": 1200,
            "unique_wallet_24h": 300,
            "unique_wallet_1h_change_percent": 12.5,
            "price_change_24h_percent": 20,
            "volume_24h_usd": 5000,
        }
        client = BirdeyeClient("k", make_fetch(lambda request: birdeye_ok(data)))
        trade = await client.fetch_token_trade_data(TOKEN)
        assert trade.address == TOKEN
        assert trade.price == 0.5
        assert trade.holder == 1200
        assert trade.unique_wallet_1h_change_percent == 12.5
        assert trade.unique_wallet_30m_change_percent is None
        assert trade.volume_24h_usd == 5000.0

    @pytest.mark.asyncio
    async def test_portfolio_value(self) -> None:
        token_list = {
            "totalUsd": 300,
            "items": [
                {"address": "A", "name": "Alpha", "symbol": "ALP", "uiAmount": 1, "valueUsd": 100},
                {"address": "B", "name": "Beta", "symbol": "BET", "uiAmount": 2, "valueUsd": 200},
            ],
        }

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/v1/wallet/token_list":
                return birdeye_ok(token_list)
            return birdeye_ok({"value": 150})

        client = BirdeyeClient("k", make_fetch(handler))
        portfolio = await client.fetch_portfolio_value("Wallet1")
        assert portfolio.total_usd == Decimal("300")
        assert portfolio.total_sol == Decimal("2.000000")
        assert [item.symbol for item in portfolio.items] == ["BET", "ALP"]
        assert portfolio.items[1].value_sol == Decimal("0.666667")

    @pytest.mark.asyncio
    async def test_portfolio_requires_sol_price(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/v1/wallet/token_list":
                return birdeye_ok({"totalUsd": 0, "items": []})
            return birdeye_ok({"value": 0})

        client = BirdeyeClient("k", make_fetch(handler))
        with pytest.raises(ProviderError):
            await client.fetch_portfolio_value("Wallet1")


class TestDexscreenerClient:
    """Tests for the Dexscreener adapter."""

    @pytest.mark.asyncio
    async def test_search_drops_incomplete_pairs(self) -> None:
        payload = {
            "schemaVersion": "1.0.0",
            "pairs": [
                {"dexId": "raydium", "liquidity": {"usd": 5000}, "marketCap": 200000, "priceUsd": "0.1"},
                {"dexId": "orca", "liquidity": {"usd": 9000}, "marketCap": 150000, "boosts": {"active": 2}},
                {"dexId": "meteora", "marketCap": 100},
            ],
        }
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["q"] = request.url.params["q"]
            return httpx.Response(200, json=payload)

        client = DexscreenerClient(make_fetch(handler))
        data = await client.search(TOKEN)
        assert seen["q"] == TOKEN
        assert [pair.dex_id for pair in data.pairs] == ["raydium", "orca"]
        assert data.highest_liquidity_pair().dex_id == "orca"
        assert data.pairs[1].boosts_active == 2

    @pytest.mark.asyncio
    async def test_highest_liquidity_tie_breaks_on_market_cap(self) -> None:
        payload = {
            "pairs": [
                {"dexId": "a", "liquidity": {"usd": 5000}, "marketCap": 100},
                {"dexId": "b", "liquidity": {"usd": 5000}, "marketCap": 900},
            ]
        }
        client = DexscreenerClient(make_fetch(lambda request: httpx.Response(200, json=payload)))
        pair = await client.search_for_highest_liquidity_pair(TOKEN)
        assert pair is not None
        assert pair.dex_id == "b"

    @pytest.mark.asyncio
    async def test_failures_yield_empty_result(self) -> None:
        client = DexscreenerClient(make_fetch(lambda request: httpx.Response(404)))
        data = await client.search(TOKEN)
        assert data.pairs == ()
        assert data.highest_liquidity_pair() is None

    @pytest.mark.asyncio
    async def test_no_pairs_yield_empty_result(self) -> None:
        client = DexscreenerClient(make_fetch(lambda request: httpx.Response(200, json={"pairs": None})))
        assert (await client.search(TOKEN)).pairs == ()


class TestHeliusClient:
    """Tests for holder-list pagination."""

    @pytest.mark.asyncio
    async def test_merges_balances_per_owner_across_pages(self) -> None:
        pages = [
            {"token_accounts": [{"owner": "A", "amount": 100}, {"owner": "B", "amount": 50}], "cursor": "c1"},
            {"token_accounts": [{"owner": "A", "amount": 25}], "cursor": "c2"},
            {"token_accounts": [{"owner": "C", "amount": 1}], "cursor": None},
        ]
        requests: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            requests.append({"body": body, "api_key": request.url.params.get("api-key")})
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": pages[len(requests) - 1]})

        client = HeliusClient("hk", make_fetch(handler), max_pages=2)
        holders = await client.fetch_holder_list(TOKEN)

        assert len(requests) == 2
        assert requests[0]["api_key"] == "hk"
        assert requests[0]["body"]["method"] == "getTokenAccounts"
        assert "cursor" not in requests[0]["body"]["params"]
        assert requests[1]["body"]["params"]["cursor"] == "c1"
        assert {holder.address: holder.balance for holder in holders} == {"A": Decimal("125"), "B": Decimal("50")}

    @pytest.mark.asyncio
    async def test_stops_on_empty_page(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": {"token_accounts": []}})

        client = HeliusClient("hk", make_fetch(handler), max_pages=5)
        assert await client.fetch_holder_list(TOKEN) == []
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_page_failure_raises_provider_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {"message": "rate limited"}})

        client = HeliusClient("hk", make_fetch(handler))
        with pytest.raises(ProviderError, match="Helius"):
            await client.fetch_holder_list(TOKEN)


class TestCoingeckoClient:
    @pytest.mark.asyncio
    async def test_fetch_prices(self) -> None:
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["key"] = request.headers.get("x-cg-demo-api-key")
            seen["ids"] = request.url.params["ids"]
            return httpx.Response(
                200,
                json={"solana": {"usd": 150.5}, "bitcoin": {"usd": 60000}, "ethereum": {"usd": 3000}},
            )

        client = CoingeckoClient("ck", make_fetch(handler))
        prices = await client.fetch_prices()
        assert prices.solana == Decimal("150.5")
        assert seen == {"key": "ck", "ids": "solana,bitcoin,ethereum"}


class TestCodexClient:
    """Tests for the Codex GraphQL adapter."""

    @pytest.mark.asyncio
    async def test_fetch_token(self) -> None:
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("Authorization")
            seen["variables"] = json.loads(request.content)["variables"]
            return httpx.Response(
                200,
                json={
                    "data": {
                        "token": {
                            "address": TOKEN,
                            "name": "Token",
                            "symbol": "TKN",
                            "decimals": 9,
                            "totalSupply": "1000000",
                            "isScam": True,
                            "info": {"circulatingSupply": "900000"},
                        }
                    }
                },
            )

        client = CodexClient("ck", make_fetch(handler))
        token = await client.fetch_token(TOKEN)
        assert seen["auth"] == "ck"
        assert seen["variables"] == {"address": TOKEN, "networkId": 1399811149}
        assert token.is_scam is True
        assert token.total_supply == Decimal("1000000")
        assert token.circulating_supply == Decimal("900000")

    @pytest.mark.asyncio
    async def test_missing_token_raises(self) -> None:
        client = CodexClient("ck", make_fetch(lambda request: httpx.Response(200, json={"data": {"token": None}})))
        with pytest.raises(ProviderError):
            await client.fetch_token(TOKEN)

    @pytest.mark.asyncio
    async def test_fetch_token_is_cached(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={"data": {"token": {"address": TOKEN, "isScam": False}}})

        client = CodexClient("ck", make_fetch(handler), cache=MemoryCache())
        first = await client.fetch_token(TOKEN)
        second = await client.fetch_token(TOKEN)
        assert first == second
        assert len(calls) == 1


class TestSolanaRpcClient:
    @pytest.mark.asyncio
    async def test_sums_token_accounts(self) -> None:
        def account(amount: str) -> dict:
            return {"account": {"data": {"parsed": {"info": {"tokenAmount": {"amount": amount}}}}}}

        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            seen.update(body)
            return httpx.Response(
                200,
                json={"jsonrpc": "2.0", "id": body["id"], "result": {"value": [account("100"), account("23")]}},
            )

        client = SolanaRpcClient("https://rpc.example.com", make_fetch(handler))
        assert await client.get_token_balance("Owner1") == 123.0
        assert seen["method"] == "getTokenAccountsByOwner"
        assert seen["params"][0] == "Owner1"
        assert seen["params"][1] == {"mint": SOL_ADDRESS}
