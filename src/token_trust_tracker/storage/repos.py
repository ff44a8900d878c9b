"""Repository pattern implementations for data access.

This module provides data access abstractions for recommenders, their
metrics, token performance, recommendations, trades and transactions.
Repositories operate on a caller-owned AsyncSession and only flush.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from sqlalchemy import or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from token_trust_tracker.storage.models import (
    Base,
    RecommenderMetricsHistoryModel,
    RecommenderMetricsModel,
    RecommenderModel,
    TokenPerformanceModel,
    TokenRecommendationModel,
    TradePerformanceModel,
    TransactionModel,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


def _utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back.
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def _utc_or_none(value: datetime | None) -> datetime | None:
    return _utc(value) if value is not None else None


def _insert(session: AsyncSession, model: type[Base]) -> Any:
    """Dialect-specific INSERT supporting ON CONFLICT clauses."""
    if session.get_bind().dialect.name == "postgresql":
        return pg_insert(model)
    return sqlite_insert(model)


@dataclass
class RecommenderDTO:
    """Data transfer object for recommenders."""

    id: str
    address: str
    solana_pubkey: str | None = None
    telegram_id: str | None = None
    discord_id: str | None = None
    twitter_id: str | None = None
    ip: str | None = None

    @classmethod
    def from_model(cls, model: RecommenderModel) -> RecommenderDTO:
        return cls(
            id=model.id,
            address=model.address,
            solana_pubkey=model.solana_pubkey,
            telegram_id=model.telegram_id,
            discord_id=model.discord_id,
            twitter_id=model.twitter_id,
            ip=model.ip,
        )


@dataclass
class RecommenderMetricsDTO:
    """Data transfer object for a recommender's current metrics."""

    recommender_id: str
    trust_score: float = 0.0
    total_recommendations: int = 0
    successful_recs: int = 0
    avg_token_performance: float = 0.0
    risk_score: float = 0.0
    consistency_score: float = 0.0
    virtual_confidence: float = 0.0
    last_active_date: datetime | None = None
    trust_decay: float = 0.0
    last_updated: datetime | None = None

    @classmethod
    def from_model(cls, model: RecommenderMetricsModel) -> RecommenderMetricsDTO:
        return cls(
            recommender_id=model.recommender_id,
            trust_score=model.trust_score,
            total_recommendations=model.total_recommendations,
            successful_recs=model.successful_recs,
            avg_token_performance=model.avg_token_performance,
            risk_score=model.risk_score,
            consistency_score=model.consistency_score,
            virtual_confidence=model.virtual_confidence,
            last_active_date=_utc(model.last_active_date),
            trust_decay=model.trust_decay,
            last_updated=_utc(model.last_updated),
        )


@dataclass
class RecommenderMetricsHistoryDTO:
    """Data transfer object for metrics history snapshots."""

    history_id: str
    recommender_id: str
    trust_score: float
    total_recommendations: int
    successful_recs: int
    avg_token_performance: float
    risk_score: float
    consistency_score: float
    virtual_confidence: float
    trust_decay: float
    recorded_at: datetime

    @classmethod
    def from_model(cls, model: RecommenderMetricsHistoryModel) -> RecommenderMetricsHistoryDTO:
        return cls(
            history_id=model.history_id,
            recommender_id=model.recommender_id,
            trust_score=model.trust_score,
            total_recommendations=model.total_recommendations,
            successful_recs=model.successful_recs,
            avg_token_performance=model.avg_token_performance,
            risk_score=model.risk_score,
            consistency_score=model.consistency_score,
            virtual_confidence=model.virtual_confidence,
            trust_decay=model.trust_decay,
            recorded_at=_utc(model.recorded_at),
        )


@dataclass
class TokenPerformanceDTO:
    """Data transfer object for token performance snapshots."""

    token_address: str
    symbol: str = ""
    price_change_24h: float = 0.0
    volume_change_24h: float = 0.0
    trade_24h_change: float = 0.0
    liquidity: float = 0.0
    liquidity_change_24h: float = 0.0
    holder_change_24h: float = 0.0
    rug_pull: bool = False
    is_scam: bool = False
    market_cap_change_24h: float = 0.0
    sustained_growth: bool = False
    rapid_dump: bool = False
    suspicious_volume: bool = False
    validation_trust: float = 0.0
    balance: float = 0.0
    initial_market_cap: float = 0.0
    last_updated: datetime | None = None

    @classmethod
    def from_model(cls, model: TokenPerformanceModel) -> TokenPerformanceDTO:
        return cls(
            token_address=model.token_address,
            symbol=model.symbol,
            price_change_24h=model.price_change_24h,
            volume_change_24h=model.volume_change_24h,
            trade_24h_change=model.trade_24h_change,
            liquidity=model.liquidity,
            liquidity_change_24h=model.liquidity_change_24h,
            holder_change_24h=model.holder_change_24h,
            rug_pull=model.rug_pull,
            is_scam=model.is_scam,
            market_cap_change_24h=model.market_cap_change_24h,
            sustained_growth=model.sustained_growth,
            rapid_dump=model.rapid_dump,
            suspicious_volume=model.suspicious_volume,
            validation_trust=model.validation_trust,
            balance=model.balance,
            initial_market_cap=model.initial_market_cap,
            last_updated=_utc(model.last_updated),
        )


@dataclass
class TokenRecommendationDTO:
    """Data transfer object for token recommendations."""

    id: str
    recommender_id: str
    token_address: str
    timestamp: datetime
    initial_market_cap: float | None = None
    initial_liquidity: float | None = None
    initial_price: float | None = None

    @classmethod
    def from_model(cls, model: TokenRecommendationModel) -> TokenRecommendationDTO:
        return cls(
            id=model.id,
            recommender_id=model.recommender_id,
            token_address=model.token_address,
            timestamp=_utc(model.timestamp),
            initial_market_cap=model.initial_market_cap,
            initial_liquidity=model.initial_liquidity,
            initial_price=model.initial_price,
        )


@dataclass
class TradePerformanceDTO:
    """Data transfer object for trades; `sell_*` fields stay None until settled."""

    token_address: str
    recommender_id: str
    buy_price: float
    buy_timestamp: datetime
    buy_amount: float
    buy_sol: float
    buy_value_usd: float
    buy_market_cap: float
    buy_liquidity: float
    is_simulation: bool = False
    rapid_dump: bool = False
    sell_price: float | None = None
    sell_timestamp: datetime | None = None
    sell_amount: float | None = None
    received_sol: float | None = None
    sell_value_usd: float | None = None
    profit_usd: float | None = None
    profit_percent: float | None = None
    sell_market_cap: float | None = None
    market_cap_change: float | None = None
    sell_liquidity: float | None = None
    liquidity_change: float | None = None
    last_updated: datetime | None = None
    id: int | None = None

    @property
    def is_open(self) -> bool:
        return self.sell_timestamp is None

    @classmethod
    def from_model(cls, model: TradePerformanceModel) -> TradePerformanceDTO:
        return cls(
            id=model.id,
            token_address=model.token_address,
            recommender_id=model.recommender_id,
            is_simulation=model.is_simulation,
            buy_price=model.buy_price,
            buy_timestamp=_utc(model.buy_timestamp),
            buy_amount=model.buy_amount,
            buy_sol=model.buy_sol,
            buy_value_usd=model.buy_value_usd,
            buy_market_cap=model.buy_market_cap,
            buy_liquidity=model.buy_liquidity,
            rapid_dump=model.rapid_dump,
            sell_price=model.sell_price,
            sell_timestamp=_utc_or_none(model.sell_timestamp),
            sell_amount=model.sell_amount,
            received_sol=model.received_sol,
            sell_value_usd=model.sell_value_usd,
            profit_usd=model.profit_usd,
            profit_percent=model.profit_percent,
            sell_market_cap=model.sell_market_cap,
            market_cap_change=model.market_cap_change,
            sell_liquidity=model.sell_liquidity,
            liquidity_change=model.liquidity_change,
            last_updated=_utc(model.last_updated),
        )


@dataclass
class TransactionDTO:
    """Data transfer object for ledger entries."""

    token_address: str
    transaction_hash: str
    type: str
    amount: float
    price: float
    is_simulation: bool
    timestamp: datetime

    @classmethod
    def from_model(cls, model: TransactionModel) -> TransactionDTO:
        return cls(
            token_address=model.token_address,
            transaction_hash=model.transaction_hash,
            type=model.type,
            amount=model.amount,
            price=model.price,
            is_simulation=model.is_simulation,
            timestamp=_utc(model.timestamp),
        )


class RecommenderRepository:
    """Repository for recommender identities."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_id(self, recommender_id: str) -> RecommenderDTO | None:
        result = await self.session.execute(select(RecommenderModel).where(RecommenderModel.id == recommender_id))
        model = result.scalar_one_or_none()
        return RecommenderDTO.from_model(model) if model else None

    async def get(self, identifier: str) -> RecommenderDTO | None:
        """Find a recommender by id, address or any platform handle."""
        result = await self.session.execute(
            select(RecommenderModel)
            .where(
                or_(
                    RecommenderModel.id == identifier,
                    RecommenderModel.address == identifier,
                    RecommenderModel.solana_pubkey == identifier,
                    RecommenderModel.telegram_id == identifier,
                    RecommenderModel.discord_id == identifier,
                    RecommenderModel.twitter_id == identifier,
                )
            )
            .limit(1)
        )
        model = result.scalars().first()
        return RecommenderDTO.from_model(model) if model else None

    async def insert_if_absent(self, dto: RecommenderDTO) -> bool:
        """Insert unless any unique identity column already exists.

        Returns:
            True if a row was inserted.
        """
        stmt = (
            _insert(self.session, RecommenderModel)
            .values(
                id=dto.id,
                address=dto.address,
                solana_pubkey=dto.solana_pubkey,
                telegram_id=dto.telegram_id,
                discord_id=dto.discord_id,
                twitter_id=dto.twitter_id,
                ip=dto.ip,
                created_at=datetime.now(UTC),
            )
            .on_conflict_do_nothing()
        )
        result = await self.session.execute(stmt)
        await self.session.flush()
        return bool(result.rowcount)


class RecommenderMetricsRepository:
    """Repository for current metrics and their history."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, recommender_id: str) -> RecommenderMetricsDTO | None:
        result = await self.session.execute(
            select(RecommenderMetricsModel).where(RecommenderMetricsModel.recommender_id == recommender_id)
        )
        model = result.scalar_one_or_none()
        return RecommenderMetricsDTO.from_model(model) if model else None

    async def initialize(self, recommender_id: str) -> bool:
        """Create zeroed metrics for a recommender if none exist."""
        now = datetime.now(UTC)
        stmt = (
            _insert(self.session, RecommenderMetricsModel)
            .values(recommender_id=recommender_id, last_active_date=now, last_updated=now)
            .on_conflict_do_nothing(index_elements=["recommender_id"])
        )
        result = await self.session.execute(stmt)
        await self.session.flush()
        return bool(result.rowcount)

    async def update(self, dto: RecommenderMetricsDTO) -> None:
        await self.session.execute(
            update(RecommenderMetricsModel)
            .where(RecommenderMetricsModel.recommender_id == dto.recommender_id)
            .values(
                trust_score=dto.trust_score,
                total_recommendations=dto.total_recommendations,
                successful_recs=dto.successful_recs,
                avg_token_performance=dto.avg_token_performance,
                risk_score=dto.risk_score,
                consistency_score=dto.consistency_score,
                virtual_confidence=dto.virtual_confidence,
                last_active_date=dto.last_active_date or datetime.now(UTC),
                trust_decay=dto.trust_decay,
                last_updated=datetime.now(UTC),
            )
        )
        await self.session.flush()

    async def log_history(self, recommender_id: str) -> RecommenderMetricsHistoryDTO | None:
        """Append a snapshot of the current metrics; None if there are none."""
        current = await self.get(recommender_id)
        if current is None:
            return None
        model = RecommenderMetricsHistoryModel(
            history_id=uuid.uuid4().hex,
            recommender_id=recommender_id,
            trust_score=current.trust_score,
            total_recommendations=current.total_recommendations,
            successful_recs=current.successful_recs,
            avg_token_performance=current.avg_token_performance,
            risk_score=current.risk_score,
            consistency_score=current.consistency_score,
            virtual_confidence=current.virtual_confidence,
            trust_decay=current.trust_decay,
            recorded_at=datetime.now(UTC),
        )
        self.session.add(model)
        await self.session.flush()
        return RecommenderMetricsHistoryDTO.from_model(model)

    async def list_history(self, recommender_id: str) -> list[RecommenderMetricsHistoryDTO]:
        result = await self.session.execute(
            select(RecommenderMetricsHistoryModel)
            .where(RecommenderMetricsHistoryModel.recommender_id == recommender_id)
            .order_by(RecommenderMetricsHistoryModel.recorded_at.desc())
        )
        return [RecommenderMetricsHistoryDTO.from_model(m) for m in result.scalars().all()]

    async def average_trust_for_token(self, token_address: str) -> float:
        """Average trust score over the recommendations of a token, 0 if none."""
        result = await self.session.execute(
            select(sa.func.avg(RecommenderMetricsModel.trust_score))
            .select_from(TokenRecommendationModel)
            .join(
                RecommenderMetricsModel,
                RecommenderMetricsModel.recommender_id == TokenRecommendationModel.recommender_id,
            )
            .where(TokenRecommendationModel.token_address == token_address)
        )
        average = result.scalar_one_or_none()
        return float(average) if average is not None else 0.0


class TokenPerformanceRepository:
    """Repository for token performance snapshots."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, token_address: str) -> TokenPerformanceDTO | None:
        result = await self.session.execute(
            select(TokenPerformanceModel).where(TokenPerformanceModel.token_address == token_address)
        )
        model = result.scalar_one_or_none()
        return TokenPerformanceDTO.from_model(model) if model else None

    async def upsert(self, dto: TokenPerformanceDTO) -> TokenPerformanceDTO:
        """Upsert by token address; the initial market cap of an existing row is kept."""
        values = {
            "token_address": dto.token_address,
            "symbol": dto.symbol,
            "price_change_24h": dto.price_change_24h,
            "volume_change_24h": dto.volume_change_24h,
            "trade_24h_change": dto.trade_24h_change,
            "liquidity": dto.liquidity,
            "liquidity_change_24h": dto.liquidity_change_24h,
            "holder_change_24h": dto.holder_change_24h,
            "rug_pull": dto.rug_pull,
            "is_scam": dto.is_scam,
            "market_cap_change_24h": dto.market_cap_change_24h,
            "sustained_growth": dto.sustained_growth,
            "rapid_dump": dto.rapid_dump,
            "suspicious_volume": dto.suspicious_volume,
            "validation_trust": dto.validation_trust,
            "balance": dto.balance,
            "initial_market_cap": dto.initial_market_cap,
            "last_updated": datetime.now(UTC),
        }
        stmt = _insert(self.session, TokenPerformanceModel).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["token_address"],
            set_={
                key: getattr(stmt.excluded, key)
                for key in values
                if key not in ("token_address", "initial_market_cap")
            },
        )
        await self.session.execute(stmt)
        await self.session.flush()
        return dto

    async def update_balance(self, token_address: str, balance: float) -> bool:
        result = await self.session.execute(
            update(TokenPerformanceModel)
            .where(TokenPerformanceModel.token_address == token_address)
            .values(balance=balance, last_updated=datetime.now(UTC))
        )
        await self.session.flush()
        return bool(result.rowcount)

    async def get_balance(self, token_address: str) -> float:
        result = await self.session.execute(
            select(TokenPerformanceModel.balance).where(TokenPerformanceModel.token_address == token_address)
        )
        balance = result.scalar_one_or_none()
        return float(balance) if balance is not None else 0.0

    async def list_with_balance(self) -> list[TokenPerformanceDTO]:
        result = await self.session.execute(
            select(TokenPerformanceModel)
            .where(TokenPerformanceModel.balance > 0)
            .order_by(TokenPerformanceModel.token_address.asc())
        )
        return [TokenPerformanceDTO.from_model(m) for m in result.scalars().all()]


class TokenRecommendationRepository:
    """Repository for append-only token recommendations."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def insert(self, dto: TokenRecommendationDTO) -> TokenRecommendationDTO:
        self.session.add(
            TokenRecommendationModel(
                id=dto.id,
                recommender_id=dto.recommender_id,
                token_address=dto.token_address,
                timestamp=dto.timestamp,
                initial_market_cap=dto.initial_market_cap,
                initial_liquidity=dto.initial_liquidity,
                initial_price=dto.initial_price,
            )
        )
        await self.session.flush()
        return dto

    async def list_by_recommender(self, recommender_id: str) -> list[TokenRecommendationDTO]:
        result = await self.session.execute(
            select(TokenRecommendationModel)
            .where(TokenRecommendationModel.recommender_id == recommender_id)
            .order_by(TokenRecommendationModel.timestamp.desc())
        )
        return [TokenRecommendationDTO.from_model(m) for m in result.scalars().all()]

    async def list_by_token(self, token_address: str) -> list[TokenRecommendationDTO]:
        result = await self.session.execute(
            select(TokenRecommendationModel)
            .where(TokenRecommendationModel.token_address == token_address)
            .order_by(TokenRecommendationModel.timestamp.desc())
        )
        return [TokenRecommendationDTO.from_model(m) for m in result.scalars().all()]

    async def list_in_range(self, start: datetime, end: datetime) -> list[TokenRecommendationDTO]:
        result = await self.session.execute(
            select(TokenRecommendationModel)
            .where((TokenRecommendationModel.timestamp >= start) & (TokenRecommendationModel.timestamp <= end))
            .order_by(TokenRecommendationModel.timestamp.asc())
        )
        return [TokenRecommendationDTO.from_model(m) for m in result.scalars().all()]


class TradePerformanceRepository:
    """Repository for buy legs and their settlement."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def insert(self, dto: TradePerformanceDTO) -> TradePerformanceDTO:
        model = TradePerformanceModel(
            token_address=dto.token_address,
            recommender_id=dto.recommender_id,
            is_simulation=dto.is_simulation,
            buy_price=dto.buy_price,
            buy_timestamp=dto.buy_timestamp,
            buy_amount=dto.buy_amount,
            buy_sol=dto.buy_sol,
            buy_value_usd=dto.buy_value_usd,
            buy_market_cap=dto.buy_market_cap,
            buy_liquidity=dto.buy_liquidity,
            rapid_dump=dto.rapid_dump,
            last_updated=datetime.now(UTC),
        )
        self.session.add(model)
        await self.session.flush()
        return TradePerformanceDTO.from_model(model)

    async def get_latest_open(
        self,
        token_address: str,
        recommender_id: str,
        *,
        is_simulation: bool,
    ) -> TradePerformanceDTO | None:
        """Most recent unsettled buy for a token and recommender."""
        result = await self.session.execute(
            select(TradePerformanceModel)
            .where(
                (TradePerformanceModel.token_address == token_address)
                & (TradePerformanceModel.recommender_id == recommender_id)
                & (TradePerformanceModel.is_simulation == is_simulation)
                & (TradePerformanceModel.sell_timestamp.is_(None))
            )
            .order_by(TradePerformanceModel.buy_timestamp.desc())
            .limit(1)
        )
        model = result.scalars().first()
        return TradePerformanceDTO.from_model(model) if model else None

    async def settle(self, trade_id: int, sell: TradePerformanceDTO) -> bool:
        """Fill in the sell fields of an open trade.

        Returns:
            False if the trade was already settled.
        """
        result = await self.session.execute(
            update(TradePerformanceModel)
            .where((TradePerformanceModel.id == trade_id) & (TradePerformanceModel.sell_timestamp.is_(None)))
            .values(
                sell_price=sell.sell_price,
                sell_timestamp=sell.sell_timestamp,
                sell_amount=sell.sell_amount,
                received_sol=sell.received_sol,
                sell_value_usd=sell.sell_value_usd,
                profit_usd=sell.profit_usd,
                profit_percent=sell.profit_percent,
                sell_market_cap=sell.sell_market_cap,
                market_cap_change=sell.market_cap_change,
                sell_liquidity=sell.sell_liquidity,
                liquidity_change=sell.liquidity_change,
                rapid_dump=sell.rapid_dump,
                last_updated=datetime.now(UTC),
            )
        )
        await self.session.flush()
        return bool(result.rowcount)


class TransactionRepository:
    """Repository for the append-only transaction ledger."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def insert(self, dto: TransactionDTO) -> TransactionDTO:
        self.session.add(
            TransactionModel(
                transaction_hash=dto.transaction_hash,
                token_address=dto.token_address,
                type=dto.type,
                amount=dto.amount,
                price=dto.price,
                is_simulation=dto.is_simulation,
                timestamp=dto.timestamp,
            )
        )
        await self.session.flush()
        return dto

    async def list_by_token(self, token_address: str) -> list[TransactionDTO]:
        result = await self.session.execute(
            select(TransactionModel)
            .where(TransactionModel.token_address == token_address)
            .order_by(TransactionModel.timestamp.asc())
        )
        return [TransactionDTO.from_model(m) for m in result.scalars().all()]
