"""Pure trust-scoring functions.

Risk weights, the decay rate and the virtual-confidence divisor are
placeholder heuristics and therefore configurable (see TrustSettings).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from token_trust_tracker.config import TrustSettings
    from token_trust_tracker.providers.models import TokenTradeData
    from token_trust_tracker.storage.repos import RecommenderMetricsDTO, TokenPerformanceDTO

SECONDS_PER_DAY = 24 * 60 * 60

RAPID_DUMP_THRESHOLD = -50.0
SUSTAINED_GROWTH_THRESHOLD = 50.0
SUSPICIOUS_VOLUME_RATIO = 0.5


@dataclass(frozen=True)
class ScoringWeights:
    """Risk weight per red flag."""

    rug_pull: float = 10.0
    scam: float = 10.0
    rapid_dump: float = 5.0
    suspicious_volume: float = 5.0

    @classmethod
    def from_settings(cls, settings: TrustSettings) -> ScoringWeights:
        return cls(
            rug_pull=settings.rug_pull_weight,
            scam=settings.scam_weight,
            rapid_dump=settings.rapid_dump_weight,
            suspicious_volume=settings.suspicious_volume_weight,
        )


@dataclass(frozen=True)
class DecayPolicy:
    rate: float = 0.95
    max_days: int = 30

    @classmethod
    def from_settings(cls, settings: TrustSettings) -> DecayPolicy:
        return cls(rate=settings.decay_rate, max_days=settings.max_decay_days)


DEFAULT_WEIGHTS = ScoringWeights()
DEFAULT_DECAY = DecayPolicy()


def calculate_risk_score(performance: TokenPerformanceDTO, weights: ScoringWeights = DEFAULT_WEIGHTS) -> float:
    return (
        weights.rug_pull * performance.rug_pull
        + weights.scam * performance.is_scam
        + weights.rapid_dump * performance.rapid_dump
        + weights.suspicious_volume * performance.suspicious_volume
    )


def calculate_consistency_score(performance: TokenPerformanceDTO, metrics: RecommenderMetricsDTO) -> float:
    """Deviation of the token's 24h price change from the recommender's average; lower is steadier."""
    return abs(performance.price_change_24h - metrics.avg_token_performance)


def calculate_trust_score(
    performance: TokenPerformanceDTO,
    metrics: RecommenderMetricsDTO,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> float:
    return (calculate_risk_score(performance, weights) + calculate_consistency_score(performance, metrics)) / 2


def calculate_overall_risk_score(
    performance: TokenPerformanceDTO,
    metrics: RecommenderMetricsDTO,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> float:
    # Same expression as calculate_trust_score; callers depend on both names.
    return (calculate_risk_score(performance, weights) + calculate_consistency_score(performance, metrics)) / 2


def is_rapid_dump(trade_data: TokenTradeData) -> bool:
    return (trade_data.trade_24h_change_percent or 0.0) < RAPID_DUMP_THRESHOLD


def is_sustained_growth(trade_data: TokenTradeData) -> bool:
    return (trade_data.volume_24h_change_percent or 0.0) > SUSTAINED_GROWTH_THRESHOLD


def is_suspicious_volume(trade_data: TokenTradeData) -> bool:
    """More than one unique wallet per two units of 24h volume."""
    if trade_data.volume_24h == 0:
        return trade_data.unique_wallet_24h > 0
    return trade_data.unique_wallet_24h / trade_data.volume_24h > SUSPICIOUS_VOLUME_RATIO


def inactive_days(last_active: datetime, now: datetime) -> int:
    """Whole days elapsed since last activity, never negative."""
    return max(0, math.floor((now - last_active).total_seconds() / SECONDS_PER_DAY))


def decay_factor(days: int, policy: DecayPolicy = DEFAULT_DECAY) -> float:
    return policy.rate ** min(days, policy.max_days)


def decayed_trust_score(
    trust_score: float,
    last_active: datetime,
    now: datetime,
    policy: DecayPolicy = DEFAULT_DECAY,
) -> float:
    return trust_score * decay_factor(inactive_days(last_active, now), policy)


def virtual_confidence(balance: float, divisor: float = 1_000_000.0) -> float:
    return balance / divisor
