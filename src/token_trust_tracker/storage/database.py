"""Engine, session factory and transactional scope for the trust store.

PostgreSQL (asyncpg) is the production backend; SQLite (aiosqlite) is used for
local runs and tests. Every TrustScoreDatabase operation runs in its own
`session_scope`, so the engine must tolerate many short concurrent sessions.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from token_trust_tracker.storage.models import Base

logger = logging.getLogger(__name__)

# Seconds a SQLite connection waits on a locked database before failing.
SQLITE_BUSY_TIMEOUT = 30


def normalize_database_url(database_url: str) -> str:
    """Map a sync PostgreSQL URL onto the asyncpg driver."""
    if database_url.startswith("postgresql://"):
        logger.warning("DATABASE_URL uses 'postgresql://'; switching to 'postgresql+asyncpg://'")
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return database_url


def is_sqlite(database_url: str) -> bool:
    return database_url.startswith("sqlite")


def create_trust_engine(
    database_url: str,
    *,
    pool_size: int = 5,
    max_overflow: int = 10,
    echo: bool = False,
) -> AsyncEngine:
    """Create the async engine with dialect-appropriate pooling.

    SQLite gets a busy timeout instead of a sized pool; PostgreSQL gets a
    sized pool with pre-ping so connections dropped by the server are replaced.
    """
    url = normalize_database_url(database_url)
    kwargs: dict[str, Any] = {"echo": echo}
    if is_sqlite(url):
        kwargs["connect_args"] = {"timeout": SQLITE_BUSY_TIMEOUT}
    else:
        kwargs.update(pool_size=pool_size, max_overflow=max_overflow, pool_pre_ping=True)
    return create_async_engine(url, **kwargs)


@asynccontextmanager
async def session_scope(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Yield a session that commits on success and rolls back on error."""
    session = session_factory()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


class DatabaseManager:
    """Owns the engine and session factory for one DATABASE_URL.

    The engine is created on first use and recreated after `dispose_async()`.
    """

    def __init__(
        self,
        database_url: str,
        *,
        pool_size: int = 5,
        max_overflow: int = 10,
        echo: bool = False,
    ) -> None:
        self.database_url = database_url
        self._pool_size = pool_size
        self._max_overflow = max_overflow
        self._echo = echo

        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            self._engine = create_trust_engine(
                self.database_url,
                pool_size=self._pool_size,
                max_overflow=self._max_overflow,
                echo=self._echo,
            )
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            self._session_factory = async_sessionmaker(bind=self.engine, expire_on_commit=False)
        return self._session_factory

    async def init_schema_async(self) -> None:
        """Create missing trust tables (Alembic owns migrations in production)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Trust schema initialized")

    async def dispose_async(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Database connections disposed")
