"""Trust score engine: scoring functions, engine models and the manager."""

from token_trust_tracker.trust.manager import TRUST_SCORE_FALLBACK, TrustScoreManager
from token_trust_tracker.trust.models import (
    RecommenderData,
    SellDetails,
    SellDetailsData,
    TokenRecommendationSummary,
    TradeData,
    TrustScoreResult,
)
from token_trust_tracker.trust.scoring import DecayPolicy, ScoringWeights

__all__ = [
    "TRUST_SCORE_FALLBACK",
    "DecayPolicy",
    "RecommenderData",
    "ScoringWeights",
    "SellDetails",
    "SellDetailsData",
    "TokenRecommendationSummary",
    "TradeData",
    "TrustScoreManager",
    "TrustScoreResult",
]
