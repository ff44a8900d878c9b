"""Tests for the analytics mirror and process-control clients."""

from __future__ import annotations

import json

import httpx
import pytest
from pydantic import SecretStr

from token_trust_tracker.backends import ProcessControlClient, TrustScoreBackendClient
from token_trust_tracker.config import BackendSettings, MissingConfigurationError
from token_trust_tracker.fetch import FetchClient, RetryPolicy

TOKEN = "TokenMint1111111111111111111111111111111111"


async def no_sleep(_delay: float) -> None:
    return None


class Recorder:
    def __init__(self, status: int = 200, body: object = None) -> None:
        self.status = status
        self.body = {"ok": True} if body is None else body
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status, json=self.body)

    @property
    def last_json(self) -> dict:
        return json.loads(self.requests[-1].content)


def make_fetch(handler) -> FetchClient:
    return FetchClient(
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        retry_policy=RetryPolicy(max_retries=1),
        sleep=no_sleep,
    )


class TestTrustScoreBackendClient:
    """Tests for the analytics mirror."""

    def test_requires_configuration(self) -> None:
        fetch = make_fetch(Recorder())
        with pytest.raises(MissingConfigurationError) as exc_info:
            TrustScoreBackendClient.from_settings(BackendSettings.model_construct(), fetch)
        assert exc_info.value.setting == "BACKEND_URL"

        settings = BackendSettings.model_construct(BACKEND_URL="https://backend.example.com")
        with pytest.raises(MissingConfigurationError) as exc_info:
            TrustScoreBackendClient.from_settings(settings, fetch)
        assert exc_info.value.setting == "BACKEND_TOKEN"

    def test_from_settings(self) -> None:
        settings = BackendSettings.model_construct(
            BACKEND_URL="https://backend.example.com",
            BACKEND_TOKEN=SecretStr("t"),
        )
        assert isinstance(TrustScoreBackendClient.from_settings(settings, make_fetch(Recorder())), TrustScoreBackendClient)

    @pytest.mark.asyncio
    async def test_create_trade_performance(self) -> None:
        recorder = Recorder()
        client = TrustScoreBackendClient("https://backend.example.com/", "t", make_fetch(recorder))

        assert await client.create_trade_performance(TOKEN, 200.0, "rec-1", True) == {"ok": True}

        request = recorder.requests[0]
        assert str(request.url) == "https://backend.example.com/updaters/createTradePerformance"
        assert request.headers["Authorization"] == "Bearer t"
        assert recorder.last_json == {
            "tokenAddress": TOKEN,
            "buy_amount": 200.0,
            "recommenderId": "rec-1",
            "is_simulation": True,
        }

    @pytest.mark.asyncio
    async def test_get_or_create_recommender(self) -> None:
        recorder = Recorder()
        client = TrustScoreBackendClient("https://backend.example.com", "t", make_fetch(recorder))
        await client.get_or_create_recommender("rec-1", "addr-1")
        assert recorder.requests[0].url.path == "/updaters/getOrCreateRecommender"
        assert recorder.last_json == {"recommenderId": "rec-1", "username": "addr-1"}

    @pytest.mark.asyncio
    async def test_failures_are_swallowed(self) -> None:
        client = TrustScoreBackendClient("https://backend.example.com", "t", make_fetch(Recorder(status=400)))
        assert await client.create_trade_performance(TOKEN, 1.0, "rec-1", True) is None


class TestProcessControlClient:
    """Tests for the process-control backend."""

    def test_requires_configuration(self) -> None:
        with pytest.raises(MissingConfigurationError) as exc_info:
            ProcessControlClient("https://sonar.example.com", "", make_fetch(Recorder()))
        assert exc_info.value.setting == "SONAR_TOKEN"

    @pytest.mark.asyncio
    async def test_start_process(self) -> None:
        recorder = Recorder(body={"started": True})
        client = ProcessControlClient("https://sonar.example.com", "key", make_fetch(recorder))

        result = await client.start_process(TOKEN, 150.0, True, "rec-1", 250_000.0, "Wallet1")

        assert result == {"started": True}
        request = recorder.requests[0]
        assert request.url.path == "/ai16z-sol/startProcess"
        assert request.headers["x-api-key"] == "key"
        assert recorder.last_json == {
            "address": TOKEN,
            "balance": 150.0,
            "isSimulation": True,
            "initial_mc": 250_000.0,
            "sell_recommender_id": "rec-1",
            "Wallet_address": "Wallet1",
        }

    @pytest.mark.asyncio
    async def test_start_process_failure_returns_none(self) -> None:
        client = ProcessControlClient("https://sonar.example.com", "key", make_fetch(Recorder(status=500)))
        assert await client.start_process(TOKEN, 1.0, True, "rec-1", 0.0, "Wallet1") is None

    @pytest.mark.asyncio
    async def test_stop_process(self) -> None:
        recorder = Recorder()
        client = ProcessControlClient("https://sonar.example.com", "key", make_fetch(recorder))
        assert await client.stop_process(TOKEN) == {"ok": True}
        assert recorder.requests[0].url.path == "/ai16z-sol/stopProcess"
        assert recorder.last_json == {"address": TOKEN}

    @pytest.mark.asyncio
    async def test_stop_process_failure_returns_none(self) -> None:
        client = ProcessControlClient("https://sonar.example.com", "key", make_fetch(Recorder(status=404)))
        assert await client.stop_process(TOKEN) is None
