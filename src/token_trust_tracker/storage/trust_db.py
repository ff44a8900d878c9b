"""Narrow persistence interface used by the trust engine and orchestrator.

Each method runs in its own transactional session. Callers treat every read
as a snapshot: no row locks are held between calls.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from token_trust_tracker.storage.database import session_scope
from token_trust_tracker.storage.repos import (
    RecommenderDTO,
    RecommenderMetricsDTO,
    RecommenderMetricsHistoryDTO,
    RecommenderMetricsRepository,
    RecommenderRepository,
    TokenPerformanceDTO,
    TokenPerformanceRepository,
    TokenRecommendationDTO,
    TokenRecommendationRepository,
    TradePerformanceDTO,
    TradePerformanceRepository,
    TransactionDTO,
    TransactionRepository,
)

if TYPE_CHECKING:
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)


class TrustScoreDatabase:
    """Persistence collaborator backed by SQLAlchemy repositories.

    Example:
        ```python
        db = TrustScoreDatabase(DatabaseManager(url).session_factory)
        recommender = await db.get_or_create_recommender(RecommenderDTO(id="r1", address="r1"))
        ```
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    # Recommenders

    async def add_recommender(self, recommender: RecommenderDTO) -> str | None:
        """Insert a recommender; returns its id, or None if the identity already exists."""
        async with session_scope(self._session_factory) as session:
            inserted = await RecommenderRepository(session).insert_if_absent(recommender)
        return recommender.id if inserted else None

    async def get_recommender(self, identifier: str) -> RecommenderDTO | None:
        async with session_scope(self._session_factory) as session:
            return await RecommenderRepository(session).get(identifier)

    async def get_or_create_recommender(self, recommender: RecommenderDTO) -> RecommenderDTO:
        """Idempotent upsert by identity; also initializes metrics for new recommenders.

        Concurrent calls for the same identity converge on one stored row.
        """
        async with session_scope(self._session_factory) as session:
            repo = RecommenderRepository(session)
            if await repo.insert_if_absent(recommender):
                await RecommenderMetricsRepository(session).initialize(recommender.id)
                logger.info("Created recommender %s", recommender.id)
            stored = await repo.get_by_id(recommender.id) or await repo.get(recommender.address)
        if stored is None:
            raise LookupError(f"Recommender {recommender.id} could not be stored")
        return stored

    async def get_or_create_recommender_with_telegram_id(self, telegram_id: str) -> RecommenderDTO:
        existing = await self.get_recommender(telegram_id)
        if existing is not None:
            return existing
        return await self.get_or_create_recommender(
            RecommenderDTO(id=str(uuid.uuid4()), address=telegram_id, telegram_id=telegram_id)
        )

    async def get_or_create_recommender_with_discord_id(self, discord_id: str) -> RecommenderDTO:
        existing = await self.get_recommender(discord_id)
        if existing is not None:
            return existing
        return await self.get_or_create_recommender(
            RecommenderDTO(id=str(uuid.uuid4()), address=discord_id, discord_id=discord_id)
        )

    # Recommender metrics

    async def initialize_recommender_metrics(self, recommender_id: str) -> bool:
        async with session_scope(self._session_factory) as session:
            return await RecommenderMetricsRepository(session).initialize(recommender_id)

    async def get_recommender_metrics(self, recommender_id: str) -> RecommenderMetricsDTO | None:
        async with session_scope(self._session_factory) as session:
            return await RecommenderMetricsRepository(session).get(recommender_id)

    async def update_recommender_metrics(self, metrics: RecommenderMetricsDTO) -> None:
        """Supersede current metrics, snapshotting the previous values into history first."""
        async with session_scope(self._session_factory) as session:
            repo = RecommenderMetricsRepository(session)
            await repo.log_history(metrics.recommender_id)
            await repo.update(metrics)

    async def log_recommender_metrics_history(self, recommender_id: str) -> RecommenderMetricsHistoryDTO | None:
        async with session_scope(self._session_factory) as session:
            return await RecommenderMetricsRepository(session).log_history(recommender_id)

    async def get_recommender_metrics_history(self, recommender_id: str) -> list[RecommenderMetricsHistoryDTO]:
        async with session_scope(self._session_factory) as session:
            return await RecommenderMetricsRepository(session).list_history(recommender_id)

    # Token performance

    async def upsert_token_performance(self, performance: TokenPerformanceDTO) -> TokenPerformanceDTO:
        async with session_scope(self._session_factory) as session:
            return await TokenPerformanceRepository(session).upsert(performance)

    async def get_token_performance(self, token_address: str) -> TokenPerformanceDTO | None:
        async with session_scope(self._session_factory) as session:
            return await TokenPerformanceRepository(session).get(token_address)

    async def get_token_balance(self, token_address: str) -> float:
        async with session_scope(self._session_factory) as session:
            return await TokenPerformanceRepository(session).get_balance(token_address)

    async def update_token_balance(self, token_address: str, balance: float) -> bool:
        async with session_scope(self._session_factory) as session:
            return await TokenPerformanceRepository(session).update_balance(token_address, balance)

    async def get_all_token_performances_with_balance(self) -> list[TokenPerformanceDTO]:
        async with session_scope(self._session_factory) as session:
            return await TokenPerformanceRepository(session).list_with_balance()

    async def calculate_validation_trust(self, token_address: str) -> float:
        """Average trust score of the recommenders of a token, 0 if none."""
        async with session_scope(self._session_factory) as session:
            return await RecommenderMetricsRepository(session).average_trust_for_token(token_address)

    # Token recommendations

    async def add_token_recommendation(self, recommendation: TokenRecommendationDTO) -> TokenRecommendationDTO:
        async with session_scope(self._session_factory) as session:
            return await TokenRecommendationRepository(session).insert(recommendation)

    async def get_recommendations_by_recommender(self, recommender_id: str) -> list[TokenRecommendationDTO]:
        async with session_scope(self._session_factory) as session:
            return await TokenRecommendationRepository(session).list_by_recommender(recommender_id)

    async def get_recommendations_by_token(self, token_address: str) -> list[TokenRecommendationDTO]:
        async with session_scope(self._session_factory) as session:
            return await TokenRecommendationRepository(session).list_by_token(token_address)

    async def get_recommendations_in_range(self, start: datetime, end: datetime) -> list[TokenRecommendationDTO]:
        async with session_scope(self._session_factory) as session:
            return await TokenRecommendationRepository(session).list_in_range(start, end)

    # Trades

    async def add_trade_performance(self, trade: TradePerformanceDTO) -> TradePerformanceDTO:
        async with session_scope(self._session_factory) as session:
            return await TradePerformanceRepository(session).insert(trade)

    async def get_latest_open_trade_performance(
        self,
        token_address: str,
        recommender_id: str,
        *,
        is_simulation: bool,
    ) -> TradePerformanceDTO | None:
        async with session_scope(self._session_factory) as session:
            return await TradePerformanceRepository(session).get_latest_open(
                token_address, recommender_id, is_simulation=is_simulation
            )

    async def update_trade_performance_on_sell(self, trade_id: int, sell: TradePerformanceDTO) -> bool:
        async with session_scope(self._session_factory) as session:
            return await TradePerformanceRepository(session).settle(trade_id, sell)

    # Transactions

    async def add_transaction(self, transaction: TransactionDTO) -> TransactionDTO:
        async with session_scope(self._session_factory) as session:
            return await TransactionRepository(session).insert(transaction)

    async def get_transactions(self, token_address: str) -> list[TransactionDTO]:
        async with session_scope(self._session_factory) as session:
            return await TransactionRepository(session).list_by_token(token_address)
