"""Trust score engine.

TrustScoreManager combines fresh market data from the token provider with the
persisted recommender state to score recommendations, record simulated buys
and settle sells.
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from token_trust_tracker.storage.repos import (
    RecommenderDTO,
    RecommenderMetricsDTO,
    TokenPerformanceDTO,
    TokenRecommendationDTO,
    TradePerformanceDTO,
    TransactionDTO,
)
from token_trust_tracker.trust import scoring
from token_trust_tracker.trust.models import (
    RecommenderData,
    SellDetails,
    SellDetailsData,
    TokenRecommendationSummary,
    TradeData,
    TrustScoreResult,
)

if TYPE_CHECKING:
    from decimal import Decimal

    from token_trust_tracker.backends.analytics import TrustScoreBackendClient
    from token_trust_tracker.config import TrustSettings
    from token_trust_tracker.providers.models import ProcessedTokenData
    from token_trust_tracker.providers.solana_rpc import SolanaRpcClient
    from token_trust_tracker.providers.token import PriceSource, TokenProvider
    from token_trust_tracker.storage.trust_db import TrustScoreDatabase

logger = logging.getLogger(__name__)

TRUST_SCORE_FALLBACK = "Unable to fetch trust score. Please try again later."

PositionOpenedCallback = Callable[[str, str], Awaitable[None]]
Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _to_sol(value_usd: float, sol_price: Decimal) -> float:
    price = float(sol_price)
    return value_usd / price if price > 0 else 0.0


class TrustScoreManager:
    """Scores recommenders and records their trades.

    Example:
        ```python
        manager = TrustScoreManager(db, token_provider, prices)
        trade = await manager.create_trade_performance(
            TradeData(token_address=mint, recommender=recommender, buy_amount=200, timestamp=now)
        )
        ```
    """

    def __init__(
        self,
        db: TrustScoreDatabase,
        token_provider: TokenProvider,
        prices: PriceSource,
        *,
        solana_rpc: SolanaRpcClient | None = None,
        backend: TrustScoreBackendClient | None = None,
        weights: scoring.ScoringWeights = scoring.DEFAULT_WEIGHTS,
        decay: scoring.DecayPolicy = scoring.DEFAULT_DECAY,
        virtual_confidence_divisor: float = 1_000_000.0,
        clock: Clock = _utc_now,
    ) -> None:
        """Initialize the manager.

        Args:
            db: Persistence collaborator.
            token_provider: Source of processed market data.
            prices: Source of the SOL/USD price.
            solana_rpc: Used for recommender wallet balances; without it balances are 0.
            backend: Optional analytics mirror.
            weights: Risk weights per red flag.
            decay: Trust decay policy.
            virtual_confidence_divisor: Wallet balance divisor for virtual confidence.
            clock: Source of the current time.
        """
        self._db = db
        self._token_provider = token_provider
        self._prices = prices
        self._solana_rpc = solana_rpc
        self._backend = backend
        self._weights = weights
        self._decay = decay
        self._virtual_confidence_divisor = virtual_confidence_divisor
        self._clock = clock
        self._on_position_opened: PositionOpenedCallback | None = None

    @classmethod
    def from_settings(
        cls,
        settings: TrustSettings,
        db: TrustScoreDatabase,
        token_provider: TokenProvider,
        prices: PriceSource,
        *,
        solana_rpc: SolanaRpcClient | None = None,
        backend: TrustScoreBackendClient | None = None,
    ) -> TrustScoreManager:
        return cls(
            db,
            token_provider,
            prices,
            solana_rpc=solana_rpc,
            backend=backend,
            weights=scoring.ScoringWeights.from_settings(settings),
            decay=scoring.DecayPolicy.from_settings(settings),
            virtual_confidence_divisor=settings.virtual_confidence_divisor,
        )

    def set_position_opened_callback(self, callback: PositionOpenedCallback | None) -> None:
        """Register the hook invoked with (token_address, recommender_id) after a buy is recorded."""
        self._on_position_opened = callback

    async def get_or_create_recommender(self, recommender: RecommenderDTO) -> RecommenderDTO:
        stored = await self._db.get_or_create_recommender(recommender)
        if self._backend is not None:
            await self._backend.get_or_create_recommender(stored.id, stored.address)
        return stored

    async def get_recommender_balance(self, recommender_wallet: str) -> float:
        """Wrapped-SOL balance of a wallet, or 0 if it cannot be read."""
        if self._solana_rpc is None:
            return 0.0
        try:
            return await self._solana_rpc.get_token_balance(recommender_wallet)
        except Exception as e:
            logger.error("Error fetching balance for %s: %s", recommender_wallet, e)
            return 0.0

    # Scoring

    def calculate_risk_score(self, performance: TokenPerformanceDTO) -> float:
        return scoring.calculate_risk_score(performance, self._weights)

    def calculate_consistency_score(
        self,
        performance: TokenPerformanceDTO,
        metrics: RecommenderMetricsDTO,
    ) -> float:
        return scoring.calculate_consistency_score(performance, metrics)

    def calculate_trust_score(self, performance: TokenPerformanceDTO, metrics: RecommenderMetricsDTO) -> float:
        return scoring.calculate_trust_score(performance, metrics, self._weights)

    def calculate_overall_risk_score(
        self,
        performance: TokenPerformanceDTO,
        metrics: RecommenderMetricsDTO,
    ) -> float:
        return scoring.calculate_overall_risk_score(performance, metrics, self._weights)

    def _decayed(self, metrics: RecommenderMetricsDTO, now: datetime) -> float:
        last_active = metrics.last_active_date or now
        return scoring.decayed_trust_score(metrics.trust_score, last_active, now, self._decay)

    def _token_performance(
        self,
        address: str,
        data: ProcessedTokenData,
        *,
        validation_trust: float,
        balance: float,
        now: datetime,
    ) -> TokenPerformanceDTO:
        trade = data.trade_data
        return TokenPerformanceDTO(
            token_address=address,
            symbol=data.token.symbol,
            price_change_24h=trade.price_change_24h_percent,
            volume_change_24h=trade.volume_24h,
            trade_24h_change=trade.trade_24h_change_percent or 0.0,
            liquidity=data.liquidity,
            liquidity_change_24h=0.0,
            holder_change_24h=trade.unique_wallet_24h_change_percent or 0.0,
            rug_pull=False,
            is_scam=data.is_scam,
            market_cap_change_24h=0.0,
            sustained_growth=scoring.is_sustained_growth(trade),
            rapid_dump=scoring.is_rapid_dump(trade),
            suspicious_volume=scoring.is_suspicious_volume(trade),
            validation_trust=validation_trust,
            balance=balance,
            initial_market_cap=data.market_cap,
            last_updated=now,
        )

    async def generate_trust_score(
        self,
        token_address: str,
        recommender_id: str,
        recommender_wallet: str,
    ) -> TrustScoreResult | None:
        """Project token performance and decayed recommender metrics without persisting.

        Returns:
            None when the recommender has no metrics.
        """
        data = await self._token_provider.get_processed_token_data(token_address)
        metrics = await self._db.get_recommender_metrics(recommender_id)
        if metrics is None:
            logger.warning("No recommender metrics for %s", recommender_id)
            return None

        now = self._clock()
        wallet_balance = await self.get_recommender_balance(recommender_wallet)
        performance = self._token_performance(
            token_address,
            data,
            validation_trust=await self._db.calculate_validation_trust(token_address),
            balance=await self._db.get_token_balance(token_address),
            now=now,
        )
        projected = replace(
            metrics,
            virtual_confidence=scoring.virtual_confidence(wallet_balance, self._virtual_confidence_divisor),
            last_active_date=now,
            trust_decay=self._decayed(metrics, now),
            last_updated=now,
        )
        return TrustScoreResult(token_performance=performance, recommender_metrics=projected)

    async def update_recommender_metrics(
        self,
        recommender_id: str,
        performance: TokenPerformanceDTO,
        recommender_wallet: str,
    ) -> RecommenderMetricsDTO | None:
        """Fold one outcome into the recommender's metrics and persist the result.

        Returns:
            The new metrics, or None when the recommender has no metrics.
        """
        metrics = await self._db.get_recommender_metrics(recommender_id)
        if metrics is None:
            logger.warning("No recommender metrics for %s", recommender_id)
            return None

        now = self._clock()
        total = metrics.total_recommendations + 1
        successful = metrics.successful_recs if performance.rug_pull else metrics.successful_recs + 1
        avg_performance = (
            metrics.avg_token_performance * metrics.total_recommendations + performance.price_change_24h
        ) / total
        trust_score = self.calculate_trust_score(performance, metrics)
        wallet_balance = await self.get_recommender_balance(recommender_wallet)

        updated = RecommenderMetricsDTO(
            recommender_id=recommender_id,
            trust_score=trust_score,
            total_recommendations=total,
            successful_recs=successful,
            avg_token_performance=avg_performance,
            risk_score=self.calculate_overall_risk_score(performance, metrics),
            consistency_score=self.calculate_consistency_score(performance, metrics),
            virtual_confidence=scoring.virtual_confidence(wallet_balance, self._virtual_confidence_divisor),
            last_active_date=now,
            trust_decay=min(max(0.0, self._decayed(metrics, now)), trust_score),
            last_updated=now,
        )
        await self._db.update_recommender_metrics(updated)
        return updated

    # Trades

    async def create_trade_performance(self, trade_data: TradeData) -> TradePerformanceDTO:
        """Record a buy and hand the position to the selling orchestrator."""
        address = trade_data.token_address
        recommender = await self.get_or_create_recommender(trade_data.recommender)
        data = await self._token_provider.get_processed_token_data(address)
        prices = await self._prices.fetch_prices()
        now = self._clock()

        price = data.trade_data.price
        buy_value_usd = trade_data.buy_amount * price
        existing_balance = await self._db.get_token_balance(address)
        balance = existing_balance + trade_data.buy_amount if trade_data.is_simulation else existing_balance

        await self._db.upsert_token_performance(
            self._token_performance(
                address,
                data,
                validation_trust=await self._db.calculate_validation_trust(address),
                balance=balance,
                now=now,
            )
        )
        trade = await self._db.add_trade_performance(
            TradePerformanceDTO(
                token_address=address,
                recommender_id=recommender.id,
                is_simulation=trade_data.is_simulation,
                buy_price=price,
                buy_timestamp=trade_data.timestamp,
                buy_amount=trade_data.buy_amount,
                buy_sol=_to_sol(buy_value_usd, prices.solana),
                buy_value_usd=buy_value_usd,
                buy_market_cap=data.market_cap,
                buy_liquidity=data.liquidity,
            )
        )
        await self._db.add_token_recommendation(
            TokenRecommendationDTO(
                id=str(uuid.uuid4()),
                recommender_id=recommender.id,
                token_address=address,
                timestamp=now,
                initial_market_cap=data.market_cap,
                initial_liquidity=data.liquidity,
                initial_price=price,
            )
        )
        if trade_data.is_simulation:
            await self._db.add_transaction(
                TransactionDTO(
                    token_address=address,
                    transaction_hash=uuid.uuid4().hex,
                    type="buy",
                    amount=trade_data.buy_amount,
                    price=price,
                    is_simulation=True,
                    timestamp=trade_data.timestamp,
                )
            )

        if self._on_position_opened is not None:
            try:
                await self._on_position_opened(address, recommender.id)
            except Exception as e:
                logger.warning("Could not start monitoring %s: %s", address, e)

        if self._backend is not None:
            await self._backend.create_trade_performance(
                address,
                trade_data.buy_amount,
                recommender.id,
                trade_data.is_simulation,
            )
        return trade

    async def update_sell_details(self, sell_details: SellDetails) -> SellDetailsData | None:
        """Settle a sell against the latest open buy.

        Returns:
            The sell summary, or None when there is no open trade (nothing is mutated).
        """
        address = sell_details.token_address
        trade = await self._db.get_latest_open_trade_performance(
            address,
            sell_details.recommender.id,
            is_simulation=sell_details.is_simulation,
        )
        if trade is None or trade.id is None:
            logger.info("No open trade for %s by %s", address, sell_details.recommender.id)
            return None

        recommender = await self.get_or_create_recommender(sell_details.recommender)
        data = await self._token_provider.get_processed_token_data(address)
        prices = await self._prices.fetch_prices()

        price = data.trade_data.price
        value_usd = sell_details.amount * price
        market_cap = data.market_cap
        liquidity = data.liquidity
        profit_usd = value_usd - trade.buy_value_usd
        profit_percent = profit_usd / trade.buy_value_usd * 100 if trade.buy_value_usd else 0.0

        result = SellDetailsData(
            price=price,
            timestamp=sell_details.timestamp,
            amount=sell_details.amount,
            received_sol=_to_sol(value_usd, prices.solana),
            value_usd=value_usd,
            profit_usd=profit_usd,
            profit_percent=profit_percent,
            market_cap=market_cap,
            market_cap_change=market_cap - trade.buy_market_cap if market_cap > 0 else 0.0,
            liquidity=liquidity,
            liquidity_change=liquidity - trade.buy_liquidity if liquidity > 0 else 0.0,
            rapid_dump=scoring.is_rapid_dump(data.trade_data),
            recommender_id=recommender.id,
        )

        settled = await self._db.update_trade_performance_on_sell(
            trade.id,
            replace(
                trade,
                sell_price=result.price,
                sell_timestamp=result.timestamp,
                sell_amount=result.amount,
                received_sol=result.received_sol,
                sell_value_usd=result.value_usd,
                profit_usd=result.profit_usd,
                profit_percent=result.profit_percent,
                sell_market_cap=result.market_cap,
                market_cap_change=result.market_cap_change,
                sell_liquidity=result.liquidity,
                liquidity_change=result.liquidity_change,
                rapid_dump=result.rapid_dump,
            ),
        )
        if not settled:
            logger.info("Trade %s for %s was settled concurrently", trade.id, address)
            return None

        if sell_details.is_simulation:
            old_balance = await self._db.get_token_balance(address)
            await self._db.update_token_balance(address, max(0.0, old_balance - sell_details.amount))
            await self._db.add_transaction(
                TransactionDTO(
                    token_address=address,
                    transaction_hash=uuid.uuid4().hex,
                    type="sell",
                    amount=sell_details.amount,
                    price=price,
                    is_simulation=True,
                    timestamp=sell_details.timestamp,
                )
            )
        return result

    # Reports

    async def get_recommendations(self, start: datetime, end: datetime) -> list[TokenRecommendationSummary]:
        """Per-token average scores over recommendations in a window, highest trust first."""
        by_token: dict[str, list[TokenRecommendationDTO]] = defaultdict(list)
        for recommendation in await self._db.get_recommendations_in_range(start, end):
            by_token[recommendation.token_address].append(recommendation)

        summaries = []
        for token_address, recommendations in by_token.items():
            performance = await self._db.get_token_performance(token_address)
            recommenders: list[RecommenderData] = []
            for recommendation in recommendations:
                metrics = await self._db.get_recommender_metrics(recommendation.recommender_id)
                if performance is None or metrics is None:
                    continue
                recommenders.append(
                    RecommenderData(
                        recommender_id=recommendation.recommender_id,
                        trust_score=self.calculate_trust_score(performance, metrics),
                        risk_score=self.calculate_risk_score(performance),
                        consistency_score=self.calculate_consistency_score(performance, metrics),
                        recommender_metrics=metrics,
                    )
                )

            count = len(recommendations)
            summaries.append(
                TokenRecommendationSummary(
                    token_address=token_address,
                    average_trust_score=sum(r.trust_score for r in recommenders) / count,
                    average_risk_score=sum(r.risk_score for r in recommenders) / count,
                    average_consistency_score=sum(r.consistency_score for r in recommenders) / count,
                    recommenders=recommenders,
                )
            )

        summaries.sort(key=lambda summary: summary.average_trust_score, reverse=True)
        return summaries

    async def get_formatted_trust_score(self, recommender_id: str, name: str) -> str:
        """One-line trust report; empty when the recommender has no metrics."""
        try:
            metrics = await self._db.get_recommender_metrics(recommender_id)
        except Exception:
            logger.exception("Error fetching trust score for %s", recommender_id)
            return TRUST_SCORE_FALLBACK
        if metrics is None:
            logger.warning("No recommender metrics found for %s", recommender_id)
            return ""
        return f"{name}'s trust score: {metrics.trust_score:.2f}"
