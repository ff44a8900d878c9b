"""Application wiring for Token Trust Tracker.

This module provides the TrustTrackerApp class that builds every collaborator
from settings and manages the lifecycle of the simulated selling service.
"""

from __future__ import annotations

import logging
from typing import Any

from redis.asyncio import Redis

from token_trust_tracker.backends import ProcessControlClient, TrustScoreBackendClient
from token_trust_tracker.config import MissingConfigurationError, Settings, get_settings
from token_trust_tracker.fetch import CacheBackend, FetchClient, MemoryCache, RedisCache, RetryPolicy
from token_trust_tracker.providers import (
    BirdeyeClient,
    CodexClient,
    CoingeckoClient,
    DexscreenerClient,
    HeliusClient,
    ProviderTtls,
    SolanaRpcClient,
    TokenProvider,
    WalletProvider,
)
from token_trust_tracker.simulation import ServiceState, SimulationSellingService
from token_trust_tracker.storage import DatabaseManager, TrustScoreDatabase
from token_trust_tracker.trust import TrustScoreManager

logger = logging.getLogger(__name__)


class TrustTrackerApp:
    """Builds and owns the tracker's collaborators.

    One-shot commands call `initialize()` and use the exposed components;
    the long-running service is driven by `start()`/`stop()` or `run()`.

    Example:
        ```python
        async with TrustTrackerApp() as app:
            print(await app.token_provider.get_formatted_token_report(address))
        ```
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()

        # Components (built in initialize())
        self._fetch: FetchClient | None = None
        self._redis: Redis | None = None
        self._db_manager: DatabaseManager | None = None
        self._db: TrustScoreDatabase | None = None
        self._token_provider: TokenProvider | None = None
        self._wallet_provider: WalletProvider | None = None
        self._manager: TrustScoreManager | None = None
        self._service: SimulationSellingService | None = None

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def db(self) -> TrustScoreDatabase:
        return _require(self._db, "database")

    @property
    def db_manager(self) -> DatabaseManager:
        return _require(self._db_manager, "database manager")

    @property
    def token_provider(self) -> TokenProvider:
        return _require(self._token_provider, "token provider")

    @property
    def wallet_provider(self) -> WalletProvider | None:
        return self._wallet_provider

    @property
    def manager(self) -> TrustScoreManager:
        return _require(self._manager, "trust score manager")

    @property
    def service(self) -> SimulationSellingService:
        return _require(self._service, "selling service")

    @property
    def is_initialized(self) -> bool:
        return self._service is not None

    async def initialize(self) -> None:
        """Build every component.

        Raises:
            MissingConfigurationError: If BIRDEYE_API_KEY is not set.
        """
        if self.is_initialized:
            return
        try:
            self._initialize_components()
        except Exception:
            await self.close()
            raise

    def _initialize_components(self) -> None:
        settings = self._settings

        logger.debug("Initializing fetch client...")
        self._fetch = FetchClient(
            retry_policy=RetryPolicy.from_settings(settings.retry),
            timeout=settings.retry.timeout_seconds,
        )
        fetch = self._fetch

        cache: CacheBackend
        if settings.redis.url:
            logger.debug("Initializing Redis connection...")
            self._redis = Redis.from_url(settings.redis.url)
            cache = RedisCache(self._redis)
        else:
            logger.info("REDIS_URL not set; using in-process cache")
            cache = MemoryCache()

        logger.debug("Initializing database manager...")
        self._db_manager = DatabaseManager(settings.database.url)
        self._db = TrustScoreDatabase(self._db_manager.session_factory)

        provider_settings = settings.providers
        ttls = ProviderTtls.from_settings(provider_settings)
        birdeye = BirdeyeClient.from_settings(provider_settings, fetch, cache=cache)
        dexscreener = DexscreenerClient(fetch, cache=cache)
        helius = _optional(HeliusClient.from_settings, provider_settings, fetch, cache=cache)
        coingecko = _optional(CoingeckoClient.from_settings, provider_settings, fetch, cache=cache)
        codex = _optional(CodexClient.from_settings, provider_settings, fetch, cache=cache)

        self._token_provider = TokenProvider(
            birdeye,
            dexscreener,
            helius=helius,
            prices=coingecko or birdeye,
            codex=codex,
            ttls=ttls,
        )
        if provider_settings.wallet_public_key:
            self._wallet_provider = WalletProvider(provider_settings.wallet_public_key, birdeye, ttls=ttls)
        else:
            logger.info("SOLANA_PUBLIC_KEY not set; wallet report disabled")

        backends = settings.backends
        backend = None
        if backends.mirror_enabled:
            backend = TrustScoreBackendClient.from_settings(backends, fetch)
        else:
            logger.info("BACKEND_URL or BACKEND_TOKEN not set; analytics mirror disabled")
        process_control = None
        if backends.process_control_enabled:
            process_control = ProcessControlClient.from_settings(backends, fetch)
        else:
            logger.info("SONAR_URL or SONAR_TOKEN not set; process control disabled")

        self._manager = TrustScoreManager.from_settings(
            settings.trust,
            self._db,
            self._token_provider,
            self._token_provider,
            solana_rpc=SolanaRpcClient(provider_settings.solana_rpc_url, fetch),
            backend=backend,
        )
        self._service = SimulationSellingService(
            self._manager,
            self._db,
            process_control=process_control,
            redis=self._redis,
            wallet_address=provider_settings.wallet_public_key or "",
            settings=settings.simulation,
        )
        logger.info("Components initialized: %s", settings.redacted_summary())

    async def init_schema(self) -> None:
        """Create any missing tables (Alembic migrations are the production path)."""
        await self.db_manager.init_schema_async()

    async def start(self) -> None:
        await self.initialize()
        try:
            await self.service.start()
        except Exception:
            await self.close()
            raise

    async def stop(self) -> None:
        try:
            if self._service is not None and self._service.state != ServiceState.STOPPED:
                await self._service.stop()
        finally:
            await self.close()

    async def run(self) -> None:
        """Run the selling service until cancelled."""
        await self.initialize()
        try:
            await self.service.run()
        finally:
            await self.close()

    async def close(self) -> None:
        """Release HTTP, Redis and database resources."""
        if self._fetch:
            await self._fetch.close()
            self._fetch = None
        if self._redis:
            await self._redis.aclose()
            self._redis = None
        if self._db_manager:
            await self._db_manager.dispose_async()
            self._db_manager = None
        self._service = None
        logger.debug("Resources cleaned up")

    async def __aenter__(self) -> TrustTrackerApp:
        await self.initialize()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.stop()


def _optional(factory: Any, *args: Any, **kwargs: Any) -> Any:
    try:
        return factory(*args, **kwargs)
    except MissingConfigurationError as e:
        logger.info("%s; collaborator disabled", e)
        return None


def _require(component: Any, name: str) -> Any:
    if component is None:
        raise RuntimeError(f"The {name} is not initialized")
    return component
