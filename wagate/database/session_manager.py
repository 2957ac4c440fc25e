"""
Async database session manager.

One engine per process, created in the application lifespan. Supports
SQLite (aiosqlite) for local runs and tests, and PostgreSQL (asyncpg) for
deployments.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from wagate.core.logging.logger import get_logger
from wagate.database.models import GATEWAY_TABLES

logger = get_logger(__name__)


class DatabaseSessionManager:
    """
    Engine and session factory owner.

    Example:
        manager = DatabaseSessionManager("sqlite+aiosqlite:///./wagate.db")
        await manager.initialize()
        await manager.create_schema()

        async with manager.get_session() as session:
            session.add(record)
            # Commits on success, rolls back on error

        await manager.cleanup()
    """

    # Transient errors that should trigger retry at startup
    _TRANSIENT_ERROR_TYPES = (
        OSError,
        ConnectionError,
        TimeoutError,
    )

    def __init__(
        self,
        url: str,
        *,
        echo: bool = False,
        pool_size: int = 10,
        max_overflow: int = 20,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 10.0,
    ):
        self.url = self._normalize_url(url)
        self.echo = echo
        self.pool_size = pool_size
        self.max_overflow = max_overflow
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay

        self._engine: AsyncEngine | None = None
        self._session_maker: async_sessionmaker[AsyncSession] | None = None

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite+aiosqlite://")

    @staticmethod
    def _normalize_url(url: str) -> str:
        """
        Normalize database URL to an async driver.

        Returns:
            URL with sqlite+aiosqlite:// or postgresql+asyncpg:// scheme
        """
        if url.startswith(("sqlite+aiosqlite://", "postgresql+asyncpg://")):
            return url
        if url.startswith("sqlite://"):
            return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
        if url.startswith("postgresql://"):
            return url.replace("postgresql://", "postgresql+asyncpg://", 1)
        if url.startswith("postgres://"):
            return url.replace("postgres://", "postgresql+asyncpg://", 1)

        raise ValueError(
            f"Invalid database URL: {url}. "
            "Expected sqlite+aiosqlite://, sqlite://, postgresql:// or postgres://"
        )

    def _create_engine(self) -> AsyncEngine:
        if self.is_sqlite:
            engine = create_async_engine(
                self.url,
                echo=self.echo,
                connect_args={"check_same_thread": False, "timeout": 30},
            )

            @event.listens_for(engine.sync_engine, "connect")
            def _enable_foreign_keys(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

            return engine

        return create_async_engine(
            self.url,
            echo=self.echo,
            pool_size=self.pool_size,
            max_overflow=self.max_overflow,
            pool_pre_ping=True,
        )

    def _calculate_backoff(self, attempt: int) -> float:
        """Exponential backoff with jitter (0.5x to 1.5x)."""
        delay = self.base_delay * (2**attempt)
        delay *= 0.5 + random.random()
        return min(delay, self.max_delay)

    async def initialize(self) -> None:
        """
        Create the engine and validate the connection.

        Raises:
            ConnectionError: If the database is unreachable after retries
        """
        if self._engine is not None:
            logger.warning("DatabaseSessionManager already initialized")
            return

        self._engine = self._create_engine()
        self._session_maker = async_sessionmaker(
            self._engine, class_=AsyncSession, expire_on_commit=False
        )

        for attempt in range(self.max_retries):
            try:
                if await self.health_check(raise_errors=True):
                    logger.info("Database connection established")
                    return
            except self._TRANSIENT_ERROR_TYPES as e:
                if attempt < self.max_retries - 1:
                    delay = self._calculate_backoff(attempt)
                    logger.warning(
                        f"Database connection failed (attempt {attempt + 1}/{self.max_retries}): {e}. "
                        f"Retrying in {delay:.2f}s..."
                    )
                    await asyncio.sleep(delay)

        await self.cleanup()
        raise ConnectionError(
            f"Failed to connect to database after {self.max_retries} attempts"
        )

    async def create_schema(self) -> None:
        """Create gateway tables if they do not exist."""
        if self._engine is None:
            raise RuntimeError("DatabaseSessionManager is not initialized")
        tables = [model.__table__ for model in GATEWAY_TABLES]
        async with self._engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all, tables=tables)
        logger.info(f"Database schema ready ({len(tables)} tables)")

    async def health_check(self, raise_errors: bool = False) -> bool:
        if self._engine is None:
            return False
        try:
            async with self._engine.connect() as conn:
                result = await conn.execute(text("SELECT 1"))
                return result.scalar() == 1
        except Exception as e:
            if raise_errors:
                raise
            logger.warning(f"Database health check failed: {e}")
            return False

    @asynccontextmanager
    async def get_session(self) -> AsyncIterator[AsyncSession]:
        """
        Session that commits on success and rolls back on error.

        Yields:
            AsyncSession for database operations
        """
        if self._session_maker is None:
            raise RuntimeError("DatabaseSessionManager is not initialized")

        async with self._session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def cleanup(self) -> None:
        """Dispose the engine."""
        if self._engine is not None:
            await self._engine.dispose()
            logger.info("Database engine disposed")
        self._engine = None
        self._session_maker = None
