"""Tests for the pure trust-scoring functions."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from token_trust_tracker.config import TrustSettings
from token_trust_tracker.providers.models import TokenTradeData
from token_trust_tracker.storage.repos import RecommenderMetricsDTO, TokenPerformanceDTO
from token_trust_tracker.trust import scoring
from token_trust_tracker.trust.scoring import DecayPolicy, ScoringWeights

NOW = datetime(2026, 3, 1, tzinfo=UTC)


def trade(**kwargs: float | None) -> TokenTradeData:
    return TokenTradeData(address="Mint", **kwargs)


class TestRiskAndConsistency:
    """Tests for the per-recommendation scores."""

    def test_clean_token_has_zero_risk(self) -> None:
        assert scoring.calculate_risk_score(TokenPerformanceDTO(token_address="Mint")) == 0.0

    def test_all_flags(self) -> None:
        performance = TokenPerformanceDTO(
            token_address="Mint",
            rug_pull=True,
            is_scam=True,
            rapid_dump=True,
            suspicious_volume=True,
        )

        assert scoring.calculate_risk_score(performance) == 30.0

    def test_custom_weights(self) -> None:
        weights = ScoringWeights(rug_pull=1.0, scam=2.0, rapid_dump=3.0, suspicious_volume=4.0)
        performance = TokenPerformanceDTO(token_address="Mint", is_scam=True, suspicious_volume=True)

        assert scoring.calculate_risk_score(performance, weights) == 6.0

    def test_weights_from_settings(self) -> None:
        settings = TrustSettings(
            TRUST_DECAY_RATE=0.9,
            TRUST_MAX_DECAY_DAYS=10,
            TRUST_RUG_PULL_WEIGHT=1.0,
            TRUST_SCAM_WEIGHT=2.0,
            TRUST_RAPID_DUMP_WEIGHT=3.0,
            TRUST_SUSPICIOUS_VOLUME_WEIGHT=4.0,
        )

        assert ScoringWeights.from_settings(settings) == ScoringWeights(1.0, 2.0, 3.0, 4.0)
        assert DecayPolicy.from_settings(settings) == DecayPolicy(rate=0.9, max_days=10)

    def test_consistency_is_absolute_deviation(self) -> None:
        performance = TokenPerformanceDTO(token_address="Mint", price_change_24h=-10.0)
        metrics = RecommenderMetricsDTO(recommender_id="r", avg_token_performance=15.0)

        assert scoring.calculate_consistency_score(performance, metrics) == 25.0

    def test_trust_and_overall_risk_agree(self) -> None:
        performance = TokenPerformanceDTO(token_address="Mint", price_change_24h=20.0, rapid_dump=True)
        metrics = RecommenderMetricsDTO(recommender_id="r")

        assert scoring.calculate_trust_score(performance, metrics) == 12.5
        assert scoring.calculate_overall_risk_score(performance, metrics) == 12.5


class TestTradeFlags:
    """Tests for the market-derived red flags."""

    @pytest.mark.parametrize(
        ("change", "expected"),
        [(-50.1, True), (-50.0, False), (10.0, False), (None, False)],
    )
    def test_rapid_dump(self, change: float | None, expected: bool) -> None:
        assert scoring.is_rapid_dump(trade(trade_24h_change_percent=change)) is expected

    @pytest.mark.parametrize(
        ("change", "expected"),
        [(50.1, True), (50.0, False), (None, False)],
    )
    def test_sustained_growth(self, change: float | None, expected: bool) -> None:
        assert scoring.is_sustained_growth(trade(volume_24h_change_percent=change)) is expected

    def test_suspicious_volume_ratio(self) -> None:
        assert scoring.is_suspicious_volume(trade(unique_wallet_24h=60, volume_24h=100)) is True
        assert scoring.is_suspicious_volume(trade(unique_wallet_24h=50, volume_24h=100)) is False

    def test_suspicious_volume_without_volume(self) -> None:
        assert scoring.is_suspicious_volume(trade(unique_wallet_24h=3, volume_24h=0)) is True
        assert scoring.is_suspicious_volume(trade(unique_wallet_24h=0, volume_24h=0)) is False


class TestDecay:
    """Tests for inactivity decay."""

    def test_inactive_days_floor(self) -> None:
        assert scoring.inactive_days(NOW - timedelta(days=2, hours=23), NOW) == 2

    def test_inactive_days_never_negative(self) -> None:
        assert scoring.inactive_days(NOW + timedelta(days=1), NOW) == 0

    def test_no_decay_when_active_today(self) -> None:
        assert scoring.decayed_trust_score(80.0, NOW - timedelta(hours=5), NOW) == 80.0

    def test_decay_per_day(self) -> None:
        assert scoring.decayed_trust_score(100.0, NOW - timedelta(days=2), NOW) == pytest.approx(90.25)

    def test_decay_is_capped(self) -> None:
        capped = scoring.decayed_trust_score(100.0, NOW - timedelta(days=60), NOW)

        assert capped == pytest.approx(21.4639, abs=1e-3)
        assert capped == scoring.decayed_trust_score(100.0, NOW - timedelta(days=30), NOW)

    def test_custom_policy(self) -> None:
        policy = DecayPolicy(rate=0.5, max_days=2)

        assert scoring.decay_factor(5, policy) == 0.25

    def test_virtual_confidence(self) -> None:
        assert scoring.virtual_confidence(2_500_000.0) == 2.5
        assert scoring.virtual_confidence(10.0, divisor=4.0) == 2.5
