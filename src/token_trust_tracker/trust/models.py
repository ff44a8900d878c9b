"""Inputs and outputs of the trust engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from token_trust_tracker.storage.repos import (
    RecommenderDTO,
    RecommenderMetricsDTO,
    TokenPerformanceDTO,
)


@dataclass(frozen=True)
class TradeData:
    """A buy to record; `buy_amount` is a token quantity."""

    token_address: str
    recommender: RecommenderDTO
    buy_amount: float
    timestamp: datetime
    is_simulation: bool = True


@dataclass(frozen=True)
class SellDetails:
    """A sell to settle against the latest open buy; `amount` is a token quantity."""

    token_address: str
    amount: float
    recommender: RecommenderDTO
    timestamp: datetime
    is_simulation: bool = True


@dataclass(frozen=True)
class SellDetailsData:
    """Computed outcome of a settled sell."""

    price: float
    timestamp: datetime
    amount: float
    received_sol: float
    value_usd: float
    profit_usd: float
    profit_percent: float
    market_cap: float
    market_cap_change: float
    liquidity: float
    liquidity_change: float
    rapid_dump: bool
    recommender_id: str


@dataclass(frozen=True)
class TrustScoreResult:
    """Unpersisted projection from generate_trust_score."""

    token_performance: TokenPerformanceDTO
    recommender_metrics: RecommenderMetricsDTO


@dataclass(frozen=True)
class RecommenderData:
    recommender_id: str
    trust_score: float
    risk_score: float
    consistency_score: float
    recommender_metrics: RecommenderMetricsDTO


@dataclass(frozen=True)
class TokenRecommendationSummary:
    token_address: str
    average_trust_score: float
    average_risk_score: float
    average_consistency_score: float
    recommenders: list[RecommenderData] = field(default_factory=list)
