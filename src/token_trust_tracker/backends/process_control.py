"""Process-control backend: starts and stops sell-monitoring processes per token."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from token_trust_tracker.config import MissingConfigurationError

if TYPE_CHECKING:
    from token_trust_tracker.config import BackendSettings
    from token_trust_tracker.fetch.client import FetchClient

logger = logging.getLogger(__name__)

START_PROCESS_PATH = "/ai16z-sol/startProcess"
STOP_PROCESS_PATH = "/ai16z-sol/stopProcess"


class ProcessControlClient:
    """Fire-and-forget client for the external monitoring backend.

    Failures are logged and reported as None; they never propagate.
    """

    def __init__(self, url: str, api_key: str, fetch: FetchClient) -> None:
        if not url:
            raise MissingConfigurationError("SONAR_URL")
        if not api_key:
            raise MissingConfigurationError("SONAR_TOKEN")
        self._url = url.rstrip("/")
        self._api_key = api_key
        self._fetch = fetch

    @classmethod
    def from_settings(cls, settings: BackendSettings, fetch: FetchClient) -> ProcessControlClient:
        if not settings.sonar_url:
            raise MissingConfigurationError("SONAR_URL")
        if settings.sonar_token is None:
            raise MissingConfigurationError("SONAR_TOKEN")
        return cls(settings.sonar_url, settings.sonar_token.get_secret_value(), fetch)

    async def request(self, path: str, body: dict[str, Any]) -> Any:
        return await self._fetch.post_json(f"{self._url}{path}", body, headers={"x-api-key": self._api_key})

    async def start_process(
        self,
        address: str,
        balance: float,
        is_simulation: bool,
        recommender_id: str,
        initial_market_cap: float,
        wallet_address: str,
    ) -> Any:
        """Ask the backend to start monitoring a token.

        Returns:
            The backend response, or None if the call failed.
        """
        try:
            result = await self.request(
                START_PROCESS_PATH,
                {
                    "address": address,
                    "balance": balance,
                    "isSimulation": is_simulation,
                    "initial_mc": initial_market_cap,
                    "sell_recommender_id": recommender_id,
                    "Wallet_address": wallet_address,
                },
            )
        except Exception as e:
            logger.error("Error starting process for token %s: %s", address, e)
            return None
        logger.info("Started monitoring process for token %s", address)
        return result

    async def stop_process(self, address: str) -> Any:
        try:
            result = await self.request(STOP_PROCESS_PATH, {"address": address})
        except Exception as e:
            logger.error("Error stopping process for token %s: %s", address, e)
            return None
        logger.info("Stopped monitoring process for token %s", address)
        return result
