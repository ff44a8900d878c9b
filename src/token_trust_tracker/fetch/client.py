"""Resilient HTTP client with exponential backoff retry.

Every outbound call to a market-data provider or backend goes through
FetchClient, which owns query building, the retry envelope, and the
JSON-RPC / GraphQL body conventions.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from token_trust_tracker.config import RetrySettings

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_DELAY = 1.0
DEFAULT_MAX_DELAY = 30.0
DEFAULT_BACKOFF_FACTOR = 2.0
DEFAULT_TIMEOUT_SECONDS = 30.0
RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})

Sleep = Callable[[float], Awaitable[None]]


class RequestError(Exception):
    """Raised when a request fails after the retry envelope is exhausted.

    Attributes:
        status_code: HTTP status of the failing response, if one was received.
        body: Response body text, if one was received.
        url: The full request URL.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
        url: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.url = url


@dataclass(frozen=True)
class RetryPolicy:
    """Retry envelope for a request.

    Delays are in seconds. `max_retries` bounds the total number of attempts.
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    initial_delay: float = DEFAULT_INITIAL_DELAY
    max_delay: float = DEFAULT_MAX_DELAY
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR
    retryable_statuses: frozenset[int] = RETRYABLE_STATUS_CODES

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ValueError("max_retries must be >= 1")

    @classmethod
    def from_settings(cls, settings: RetrySettings) -> RetryPolicy:
        return cls(
            max_retries=settings.max_retries,
            initial_delay=settings.initial_delay_seconds,
            max_delay=settings.max_delay_seconds,
            backoff_factor=settings.backoff_factor,
        )

    def is_retryable_status(self, status_code: int) -> bool:
        return status_code in self.retryable_statuses


def calculate_delay(attempt: int, policy: RetryPolicy) -> float:
    """Delay to wait after the given 1-based attempt fails."""
    delay = policy.initial_delay * policy.backoff_factor ** (attempt - 1)
    return min(delay, policy.max_delay)


def build_url(url: str, params: Mapping[str, Any] | None = None) -> str:
    """Append query parameters to a URL, dropping parameters set to None."""
    if not params:
        return url
    filtered = {key: value for key, value in params.items() if value is not None}
    if not filtered:
        return url
    return str(httpx.URL(url).copy_merge_params(filtered))


class FetchClient:
    """HTTP request primitive with retry, JSON, JSON-RPC and GraphQL helpers.

    Network failures and retryable HTTP statuses are retried with exponential
    backoff. Any other non-2xx response fails immediately with a RequestError
    carrying the status and body.

    Example:
        ```python
        async with FetchClient() as fetch:
            data = await fetch.get_json("https://api.example.com/v1/items", params={"q": "x"})
        ```
    """

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        retry_policy: RetryPolicy | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Initialize the fetch client.

        Args:
            client: Optional pre-built httpx client (tests pass one with a MockTransport).
            retry_policy: Default retry policy for every request.
            timeout: Request timeout in seconds for the owned client.
            sleep: Awaitable used to wait between attempts.
        """
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
        )
        self._retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep
        self._rpc_ids = itertools.count(1)

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        json: Any = None,
        retry_policy: RetryPolicy | None = None,
    ) -> httpx.Response:
        """Issue a request inside the retry envelope.

        Raises:
            RequestError: On a non-retryable status, or once attempts are exhausted.
        """
        policy = retry_policy or self._retry_policy
        target = build_url(url, params)
        last_error: RequestError | None = None
        last_cause: Exception | None = None

        for attempt in range(1, policy.max_retries + 1):
            try:
                response = await self._client.request(method, target, headers=headers, json=json)
            except httpx.TransportError as e:
                last_error = RequestError(f"{method} {target} failed: {e}", url=target)
                last_cause = e
            else:
                if response.is_success:
                    return response
                error = RequestError(
                    f"{method} {target} failed with status {response.status_code}",
                    status_code=response.status_code,
                    body=response.text,
                    url=target,
                )
                if not policy.is_retryable_status(response.status_code):
                    raise error
                last_error = error
                last_cause = None

            if attempt < policy.max_retries:
                delay = calculate_delay(attempt, policy)
                logger.warning(
                    "Attempt %d/%d failed: %s. Retrying in %.1f seconds...",
                    attempt,
                    policy.max_retries,
                    last_error,
                    delay,
                )
                await self._sleep(delay)

        if last_error is None:
            raise RequestError(f"{method} {target} made no attempts", url=target)
        raise last_error from last_cause

    async def json_request(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        json: Any = None,
        retry_policy: RetryPolicy | None = None,
    ) -> Any:
        """Issue a request and decode the JSON body."""
        merged_headers = {"Content-Type": "application/json", **(headers or {})}
        response = await self.request(
            method,
            url,
            params=params,
            headers=merged_headers,
            json=json,
            retry_policy=retry_policy,
        )
        try:
            return response.json()
        except ValueError as e:
            raise RequestError(
                f"{method} {response.request.url} returned malformed JSON",
                status_code=response.status_code,
                body=response.text,
                url=str(response.request.url),
            ) from e

    async def get_json(
        self,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        return await self.json_request("GET", url, params=params, headers=headers)

    async def post_json(
        self,
        url: str,
        body: Any,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        return await self.json_request("POST", url, headers=headers, json=body)

    async def json_rpc(
        self,
        url: str,
        method: str,
        params: Any,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        """Call a JSON-RPC 2.0 method and return its `result`.

        Raises:
            RequestError: If the transport fails or the response carries an `error`.
        """
        payload = await self.post_json(
            url,
            {"jsonrpc": "2.0", "id": next(self._rpc_ids), "method": method, "params": params},
            headers=headers,
        )
        if not isinstance(payload, dict):
            raise RequestError(f"JSON-RPC {method} returned a non-object payload", url=url)
        if payload.get("error"):
            raise RequestError(f"JSON-RPC {method} failed: {payload['error']}", url=url)
        return payload.get("result")

    async def graphql(
        self,
        url: str,
        query: str,
        variables: Mapping[str, Any] | None = None,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        """Run a GraphQL query and return its `data` member."""
        payload = await self.post_json(
            url,
            {"query": query, "variables": dict(variables or {})},
            headers=headers,
        )
        if not isinstance(payload, dict):
            raise RequestError("GraphQL query returned a non-object payload", url=url)
        if payload.get("errors"):
            raise RequestError(f"GraphQL query failed: {payload['errors']}", url=url)
        return payload.get("data")

    async def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> FetchClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
