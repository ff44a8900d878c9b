"""SQLAlchemy models for persistent storage.

This module defines the database schema for recommenders, their metrics and
metrics history, token performance, recommendations, trades and the
transaction ledger.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _now() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class RecommenderModel(Base):
    """A tracked identity; identity fields never change after creation."""

    __tablename__ = "recommenders"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    address: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    solana_pubkey: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True)
    telegram_id: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True)
    discord_id: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True)
    twitter_id: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True)
    ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)


class RecommenderMetricsModel(Base):
    """Current aggregate metrics, one row per recommender."""

    __tablename__ = "recommender_metrics"

    recommender_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    trust_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_recommendations: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    successful_recs: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avg_token_performance: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    risk_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    consistency_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    virtual_confidence: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    last_active_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    trust_decay: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)


class RecommenderMetricsHistoryModel(Base):
    """Append-only snapshot of a recommender's metrics."""

    __tablename__ = "recommender_metrics_history"

    history_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    recommender_id: Mapped[str] = mapped_column(String(64), nullable=False)
    trust_score: Mapped[float] = mapped_column(Float, nullable=False)
    total_recommendations: Mapped[int] = mapped_column(Integer, nullable=False)
    successful_recs: Mapped[int] = mapped_column(Integer, nullable=False)
    avg_token_performance: Mapped[float] = mapped_column(Float, nullable=False)
    risk_score: Mapped[float] = mapped_column(Float, nullable=False)
    consistency_score: Mapped[float] = mapped_column(Float, nullable=False)
    virtual_confidence: Mapped[float] = mapped_column(Float, nullable=False)
    trust_decay: Mapped[float] = mapped_column(Float, nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)

    __table_args__ = (Index("idx_metrics_history_recommender_recorded", "recommender_id", "recorded_at"),)


class TokenPerformanceModel(Base):
    """Latest market snapshot and simulated holding of a token."""

    __tablename__ = "token_performance"

    token_address: Mapped[str] = mapped_column(String(64), primary_key=True)
    symbol: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    price_change_24h: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    volume_change_24h: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    trade_24h_change: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    liquidity: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    liquidity_change_24h: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    holder_change_24h: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    rug_pull: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_scam: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    market_cap_change_24h: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    sustained_growth: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    rapid_dump: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    suspicious_volume: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    validation_trust: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    balance: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    initial_market_cap: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)

    __table_args__ = (Index("idx_token_performance_balance", "balance"),)


class TokenRecommendationModel(Base):
    """A recommender mentioning a token, with the market state at that moment."""

    __tablename__ = "token_recommendations"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    recommender_id: Mapped[str] = mapped_column(String(64), nullable=False)
    token_address: Mapped[str] = mapped_column(String(64), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    initial_market_cap: Mapped[float | None] = mapped_column(Float, nullable=True)
    initial_liquidity: Mapped[float | None] = mapped_column(Float, nullable=True)
    initial_price: Mapped[float | None] = mapped_column(Float, nullable=True)

    __table_args__ = (
        Index("idx_token_recommendations_token", "token_address"),
        Index("idx_token_recommendations_recommender", "recommender_id"),
        Index("idx_token_recommendations_timestamp", "timestamp"),
    )


class TradePerformanceModel(Base):
    """One buy leg, completed in place by the matching sell."""

    __tablename__ = "trade_performance"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    token_address: Mapped[str] = mapped_column(String(64), nullable=False)
    recommender_id: Mapped[str] = mapped_column(String(64), nullable=False)
    is_simulation: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    buy_price: Mapped[float] = mapped_column(Float, nullable=False)
    buy_timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    buy_amount: Mapped[float] = mapped_column(Float, nullable=False)
    buy_sol: Mapped[float] = mapped_column(Float, nullable=False)
    buy_value_usd: Mapped[float] = mapped_column(Float, nullable=False)
    buy_market_cap: Mapped[float] = mapped_column(Float, nullable=False)
    buy_liquidity: Mapped[float] = mapped_column(Float, nullable=False)

    sell_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    sell_timestamp: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    sell_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    received_sol: Mapped[float | None] = mapped_column(Float, nullable=True)
    sell_value_usd: Mapped[float | None] = mapped_column(Float, nullable=True)
    profit_usd: Mapped[float | None] = mapped_column(Float, nullable=True)
    profit_percent: Mapped[float | None] = mapped_column(Float, nullable=True)
    sell_market_cap: Mapped[float | None] = mapped_column(Float, nullable=True)
    market_cap_change: Mapped[float | None] = mapped_column(Float, nullable=True)
    sell_liquidity: Mapped[float | None] = mapped_column(Float, nullable=True)
    liquidity_change: Mapped[float | None] = mapped_column(Float, nullable=True)

    rapid_dump: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)

    __table_args__ = (
        UniqueConstraint(
            "token_address",
            "recommender_id",
            "buy_timestamp",
            "is_simulation",
            name="uq_trade_performance_buy",
        ),
        Index("idx_trade_performance_open", "token_address", "recommender_id", "sell_timestamp"),
    )


class TransactionModel(Base):
    """Append-only ledger entry for one executed buy or sell leg."""

    __tablename__ = "transactions"

    transaction_hash: Mapped[str] = mapped_column(String(128), primary_key=True)
    token_address: Mapped[str] = mapped_column(String(64), nullable=False)
    type: Mapped[str] = mapped_column(String(4), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    is_simulation: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)

    __table_args__ = (Index("idx_transactions_token_ts", "token_address", "timestamp"),)
