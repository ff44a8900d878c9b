"""Pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from token_trust_tracker.storage.models import Base
from token_trust_tracker.storage.trust_db import TrustScoreDatabase


@pytest.fixture
def sample_token_address() -> str:
    """Sample token mint address for testing."""
    return "TokenMint1111111111111111111111111111111111"


@pytest.fixture
async def async_engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    """Create an async SQLite engine on a temporary file."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'trust.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=async_engine, expire_on_commit=False)


@pytest.fixture
async def async_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """Create an async session for testing."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def trust_db(session_factory: async_sessionmaker[AsyncSession]) -> TrustScoreDatabase:
    return TrustScoreDatabase(session_factory)
