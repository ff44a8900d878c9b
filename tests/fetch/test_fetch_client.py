"""Tests for the resilient fetch client."""

from __future__ import annotations

import json

import httpx
import pytest

from token_trust_tracker.fetch.client import (
    FetchClient,
    RequestError,
    RetryPolicy,
    build_url,
    calculate_delay,
)


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def make_client(handler, *, policy: RetryPolicy | None = None) -> tuple[FetchClient, SleepRecorder]:
    sleep = SleepRecorder()
    client = FetchClient(
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        retry_policy=policy or RetryPolicy(),
        sleep=sleep,
    )
    return client, sleep


class TestRetryPolicy:
    """Tests for RetryPolicy and delay calculation."""

    def test_defaults(self) -> None:
        policy = RetryPolicy()
        assert policy.max_retries == 3
        assert policy.initial_delay == 1.0
        assert policy.max_delay == 30.0
        assert policy.backoff_factor == 2.0

    def test_rejects_zero_attempts(self) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(max_retries=0)

    def test_delay_grows_exponentially(self) -> None:
        policy = RetryPolicy()
        assert [calculate_delay(n, policy) for n in (1, 2, 3)] == [1.0, 2.0, 4.0]

    def test_delay_is_capped(self) -> None:
        policy = RetryPolicy(initial_delay=10.0, max_delay=15.0)
        assert calculate_delay(3, policy) == 15.0


class TestBuildUrl:
    """Tests for query-string building."""

    def test_drops_none_params(self) -> None:
        url = build_url("https://api.example.com/v1/items", {"a": "1", "b": None})
        assert url == "https://api.example.com/v1/items?a=1"

    def test_no_params(self) -> None:
        assert build_url("https://api.example.com/x") == "https://api.example.com/x"
        assert build_url("https://api.example.com/x", {"b": None}) == "https://api.example.com/x"


class TestFetchClientRetries:
    """Tests for the retry envelope."""

    @pytest.mark.asyncio
    async def test_success_first_attempt(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={"ok": True})

        client, sleep = make_client(handler)
        assert await client.get_json("https://api.example.com/x", params={"q": "v"}) == {"ok": True}
        assert len(calls) == 1
        assert calls[0].url.params["q"] == "v"
        assert sleep.delays == []
        await client.close()

    @pytest.mark.asyncio
    async def test_retries_retryable_status_then_succeeds(self) -> None:
        responses = iter([httpx.Response(503), httpx.Response(429), httpx.Response(200, json=[1])])

        client, sleep = make_client(lambda request: next(responses))
        assert await client.get_json("https://api.example.com/x") == [1]
        assert sleep.delays == [1.0, 2.0]
        await client.close()

    @pytest.mark.asyncio
    async def test_exhausts_attempts(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(500, text="boom")

        client, sleep = make_client(handler)
        with pytest.raises(RequestError) as exc_info:
            await client.get_json("https://api.example.com/x")
        assert exc_info.value.status_code == 500
        assert exc_info.value.body == "boom"
        assert len(calls) == 3
        assert sleep.delays == [1.0, 2.0]
        await client.close()

    @pytest.mark.asyncio
    async def test_no_attempts_raises_request_error(self) -> None:
        calls = []
        policy = RetryPolicy()
        object.__setattr__(policy, "max_retries", 0)

        client, _ = make_client(lambda request: calls.append(request) or httpx.Response(200), policy=policy)
        with pytest.raises(RequestError, match="made no attempts"):
            await client.request("GET", "https://api.example.com/x")
        assert calls == []
        await client.close()

    @pytest.mark.asyncio
    async def test_non_retryable_status_fails_immediately(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(404, text="not found")

        client, sleep = make_client(handler)
        with pytest.raises(RequestError) as exc_info:
            await client.get_json("https://api.example.com/x")
        assert exc_info.value.status_code == 404
        assert len(calls) == 1
        assert sleep.delays == []
        await client.close()

    @pytest.mark.asyncio
    async def test_transport_errors_are_retried(self) -> None:
        attempts = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(200, json={"ok": True})

        client, sleep = make_client(handler)
        assert await client.get_json("https://api.example.com/x") == {"ok": True}
        assert attempts == 2
        assert sleep.delays == [1.0]
        await client.close()

    @pytest.mark.asyncio
    async def test_malformed_json(self) -> None:
        client, _ = make_client(lambda request: httpx.Response(200, text="not json"))
        with pytest.raises(RequestError, match="malformed JSON"):
            await client.get_json("https://api.example.com/x")
        await client.close()


class TestFetchClientBodies:
    """Tests for JSON, JSON-RPC and GraphQL helpers."""

    @pytest.mark.asyncio
    async def test_post_json_sends_body_and_headers(self) -> None:
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers.get("Authorization")
            seen["content_type"] = request.headers.get("Content-Type")
            return httpx.Response(200, json={"ok": True})

        client, _ = make_client(handler)
        await client.post_json("https://api.example.com/x", {"a": 1}, headers={"Authorization": "Bearer t"})
        assert seen == {"body": {"a": 1}, "auth": "Bearer t", "content_type": "application/json"}
        await client.close()

    @pytest.mark.asyncio
    async def test_json_rpc_returns_result(self) -> None:
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            bodies.append(body)
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": {"value": 7}})

        client, _ = make_client(handler)
        assert await client.json_rpc("https://rpc.example.com", "getThing", ["a"]) == {"value": 7}
        assert await client.json_rpc("https://rpc.example.com", "getThing", ["b"]) == {"value": 7}
        assert bodies[0]["jsonrpc"] == "2.0"
        assert bodies[0]["method"] == "getThing"
        assert bodies[0]["params"] == ["a"]
        assert bodies[1]["id"] != bodies[0]["id"]
        await client.close()

    @pytest.mark.asyncio
    async def test_json_rpc_error(self) -> None:
        client, _ = make_client(
            lambda request: httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32000}})
        )
        with pytest.raises(RequestError, match="getThing"):
            await client.json_rpc("https://rpc.example.com", "getThing", [])
        await client.close()

    @pytest.mark.asyncio
    async def test_graphql_returns_data(self) -> None:
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(json.loads(request.content))
            return httpx.Response(200, json={"data": {"token": {"name": "T"}}})

        client, _ = make_client(handler)
        data = await client.graphql("https://graph.example.com", "query { token }", {"id": 1})
        assert data == {"token": {"name": "T"}}
        assert seen == {"query": "query { token }", "variables": {"id": 1}}
        await client.close()

    @pytest.mark.asyncio
    async def test_graphql_errors(self) -> None:
        client, _ = make_client(lambda request: httpx.Response(200, json={"errors": [{"message": "bad"}]}))
        with pytest.raises(RequestError):
            await client.graphql("https://graph.example.com", "query { token }")
        await client.close()
