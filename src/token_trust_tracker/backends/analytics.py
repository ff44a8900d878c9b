"""Analytics mirror: best-effort forwarding of trust events to an external backend."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from token_trust_tracker.config import MissingConfigurationError

if TYPE_CHECKING:
    from token_trust_tracker.config import BackendSettings
    from token_trust_tracker.fetch.client import FetchClient

logger = logging.getLogger(__name__)


class TrustScoreBackendClient:
    """Mirrors trade creation and recommender registration.

    Every call is best-effort: failures are logged and swallowed, and the
    caller receives None.
    """

    def __init__(self, url: str, token: str, fetch: FetchClient) -> None:
        if not url:
            raise MissingConfigurationError("BACKEND_URL")
        if not token:
            raise MissingConfigurationError("BACKEND_TOKEN")
        self._url = url.rstrip("/")
        self._token = token
        self._fetch = fetch

    @classmethod
    def from_settings(cls, settings: BackendSettings, fetch: FetchClient) -> TrustScoreBackendClient:
        if not settings.backend_url:
            raise MissingConfigurationError("BACKEND_URL")
        if settings.backend_token is None:
            raise MissingConfigurationError("BACKEND_TOKEN")
        return cls(settings.backend_url, settings.backend_token.get_secret_value(), fetch)

    async def request(self, path: str, body: dict[str, Any]) -> Any:
        try:
            return await self._fetch.post_json(
                f"{self._url}{path}",
                body,
                headers={"Authorization": f"Bearer {self._token}"},
            )
        except Exception as e:
            logger.warning("Analytics mirror call %s failed: %s", path, e)
            return None

    async def create_trade_performance(
        self,
        token_address: str,
        buy_amount: float,
        recommender_id: str,
        is_simulation: bool,
    ) -> Any:
        return await self.request(
            "/updaters/createTradePerformance",
            {
                "tokenAddress": token_address,
                "buy_amount": buy_amount,
                "recommenderId": recommender_id,
                "is_simulation": is_simulation,
            },
        )

    async def get_or_create_recommender(self, recommender_id: str, address: str) -> Any:
        return await self.request(
            "/updaters/getOrCreateRecommender",
            {"recommenderId": recommender_id, "username": address},
        )
