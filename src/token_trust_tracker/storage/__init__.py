"""Storage layer - Database schemas, repositories and the persistence interface."""

from token_trust_tracker.storage.database import (
    DatabaseManager,
    create_trust_engine,
    normalize_database_url,
    session_scope,
)
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
from token_trust_tracker.storage.trust_db import TrustScoreDatabase

__all__ = [
    "Base",
    "DatabaseManager",
    "RecommenderDTO",
    "RecommenderMetricsDTO",
    "RecommenderMetricsHistoryDTO",
    "RecommenderMetricsHistoryModel",
    "RecommenderMetricsModel",
    "RecommenderMetricsRepository",
    "RecommenderModel",
    "RecommenderRepository",
    "TokenPerformanceDTO",
    "TokenPerformanceModel",
    "TokenPerformanceRepository",
    "TokenRecommendationDTO",
    "TokenRecommendationModel",
    "TokenRecommendationRepository",
    "TradePerformanceDTO",
    "TradePerformanceModel",
    "TradePerformanceRepository",
    "TransactionDTO",
    "TransactionModel",
    "TransactionRepository",
    "TrustScoreDatabase",
    "create_trust_engine",
    "normalize_database_url",
    "session_scope",
]
