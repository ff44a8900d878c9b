"""Tests for settings, application wiring and the command line."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import ValidationError

from token_trust_tracker.__main__ import _run_command, build_parser
from token_trust_tracker.app import TrustTrackerApp
from token_trust_tracker.config import (
    BackendSettings,
    DatabaseSettings,
    MissingConfigurationError,
    ProviderSettings,
    RedisSettings,
    Settings,
    clear_settings_cache,
    get_settings,
)
from token_trust_tracker.simulation import ServiceState


def make_settings(tmp_path: Path, **provider_kwargs: str | None) -> Settings:
    return Settings(
        database=DatabaseSettings(DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'app.db'}"),
        redis=RedisSettings(REDIS_URL=None),
        providers=ProviderSettings(**provider_kwargs),
        backends=BackendSettings(BACKEND_URL=None, BACKEND_TOKEN=None, SONAR_URL=None, SONAR_TOKEN=None),
    )


class TestSettings:
    """Tests for configuration validation."""

    def test_rejects_unsupported_database(self) -> None:
        with pytest.raises(ValidationError):
            DatabaseSettings(DATABASE_URL="mysql://localhost/db")

    def test_rejects_bad_redis_url(self) -> None:
        with pytest.raises(ValidationError):
            RedisSettings(REDIS_URL="http://localhost:6379")

    def test_backend_flags(self) -> None:
        backends = BackendSettings(SONAR_URL="https://sonar.test", SONAR_TOKEN="t", BACKEND_URL=None)

        assert backends.process_control_enabled is True
        assert backends.mirror_enabled is False

    def test_settings_are_cached(self) -> None:
        clear_settings_cache()
        try:
            assert get_settings() is get_settings()
        finally:
            clear_settings_cache()

    def test_redacted_summary(self, tmp_path: Path) -> None:
        settings = make_settings(tmp_path, BIRDEYE_API_KEY="secret")
        settings.database = DatabaseSettings(DATABASE_URL="postgresql+asyncpg://user:pass@db/trust")

        summary = settings.redacted_summary()

        assert summary["database_url"] == "postgresql+asyncpg://user:***@db/trust"
        assert summary["redis_url"] == "(not set)"
        assert summary["providers"]["birdeye_api_key"] == "(set)"
        assert "secret" not in str(summary)


class TestTrustTrackerApp:
    """Tests for component wiring."""

    @pytest.mark.asyncio
    async def test_requires_birdeye_key(self, tmp_path: Path) -> None:
        app = TrustTrackerApp(make_settings(tmp_path, BIRDEYE_API_KEY=None))

        with pytest.raises(MissingConfigurationError):
            await app.initialize()

        assert app.is_initialized is False

    def test_components_unavailable_before_initialize(self, tmp_path: Path) -> None:
        app = TrustTrackerApp(make_settings(tmp_path, BIRDEYE_API_KEY="key"))

        with pytest.raises(RuntimeError):
            _ = app.manager

    @pytest.mark.asyncio
    async def test_initialize_and_schema(self, tmp_path: Path) -> None:
        settings = make_settings(tmp_path, BIRDEYE_API_KEY="key", SOLANA_PUBLIC_KEY="Wallet111")

        async with TrustTrackerApp(settings) as app:
            await app.init_schema()

            assert app.wallet_provider is not None
            assert app.service.state == ServiceState.STOPPED
            assert await app.db.get_token_balance("Mint") == 0.0

        assert app.is_initialized is False

    @pytest.mark.asyncio
    async def test_backends_follow_flags(self, tmp_path: Path) -> None:
        settings = make_settings(tmp_path, BIRDEYE_API_KEY="key")
        settings.backends = BackendSettings(
            BACKEND_URL="https://backend.test",
            BACKEND_TOKEN="t",
            SONAR_URL="https://sonar.test",
            SONAR_TOKEN=None,
        )

        async with TrustTrackerApp(settings) as app:
            assert app.manager._backend is not None
            assert app.service._process_control is None

    @pytest.mark.asyncio
    async def test_stop_closes_resources_when_service_fails(self, tmp_path: Path) -> None:
        app = TrustTrackerApp(make_settings(tmp_path, BIRDEYE_API_KEY="key"))
        await app.initialize()
        app._service = MagicMock(state=ServiceState.RUNNING, stop=AsyncMock(side_effect=RuntimeError("stop failed")))

        with pytest.raises(RuntimeError, match="stop failed"):
            await app.stop()

        assert app.is_initialized is False

    @pytest.mark.asyncio
    async def test_wallet_provider_optional(self, tmp_path: Path) -> None:
        async with TrustTrackerApp(make_settings(tmp_path, BIRDEYE_API_KEY="key", SOLANA_PUBLIC_KEY=None)) as app:
            assert app.wallet_provider is None


class TestCommandLine:
    """Tests for argument parsing and command dispatch."""

    def test_recommendations_default_window(self) -> None:
        args = build_parser().parse_args(["recommendations"])

        assert args.command == "recommendations"
        assert args.days == 7

    def test_trust_score_arguments(self) -> None:
        args = build_parser().parse_args(["-v", "trust-score", "rec-1", "Alice"])

        assert args.verbose is True
        assert (args.recommender_id, args.name) == ("rec-1", "Alice")

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    @pytest.mark.asyncio
    async def test_trust_score_command(self, capsys: pytest.CaptureFixture[str]) -> None:
        app = MagicMock()
        app.manager.get_formatted_trust_score = AsyncMock(return_value="Alice's trust score: 12.50")

        code = await _run_command(app, build_parser().parse_args(["trust-score", "rec-1", "Alice"]))

        assert code == 0
        assert capsys.readouterr().out.strip() == "Alice's trust score: 12.50"
        app.manager.get_formatted_trust_score.assert_awaited_once_with("rec-1", "Alice")

    @pytest.mark.asyncio
    async def test_portfolio_without_wallet(self) -> None:
        app = MagicMock()
        app.wallet_provider = None

        assert await _run_command(app, build_parser().parse_args(["portfolio"])) == 1

    @pytest.mark.asyncio
    async def test_empty_recommendations(self, capsys: pytest.CaptureFixture[str]) -> None:
        app = MagicMock()
        app.manager.get_recommendations = AsyncMock(return_value=[])

        await _run_command(app, build_parser().parse_args(["recommendations", "--days", "3"]))

        assert "No recommendations in range" in capsys.readouterr().out
