"""
Database Connection Management

Async SQLAlchemy 2.0 engine and session factory wrapped in an explicit client
object. One instance serves the relational store and another the document
store; both are created at startup and injected into services.
"""

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Type

import structlog
from sqlalchemy import text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool, StaticPool

logger = structlog.get_logger(__name__)

_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class Database:
    """
    Async database client.

    Example:
        db = Database.from_url("postgresql+asyncpg://...", name="sales")
        await db.connect()
        async with db.session() as session:
            await session.execute(query)
    """

    def __init__(self, engine: AsyncEngine, name: str = "database"):
        self.engine = engine
        self.name = name
        self._session_factory = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @classmethod
    def from_url(cls, url: str, name: str = "database", echo: bool = False) -> "Database":
        """
        Create a client for ``url``.

        asyncpg pools its own connections, so the engine uses NullPool; an
        in-memory SQLite database must keep a single shared connection.
        """
        engine_config = {
            "echo": echo,
            "pool_pre_ping": True,
        }
        if url.startswith("sqlite") and ":memory:" in url:
            engine_config["poolclass"] = StaticPool
            engine_config.pop("pool_pre_ping")
        else:
            engine_config["poolclass"] = NullPool

        return cls(create_async_engine(url, **engine_config), name=name)

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    def insert(self, model):
        """Dialect-specific INSERT supporting ``on_conflict_do_update``"""
        try:
            return _UPSERT_INSERTS[self.dialect](model)
        except KeyError:
            raise NotImplementedError(f"Upserts are not supported on {self.dialect}") from None

    async def connect(self) -> None:
        """Verify connectivity. Raises if the store is unreachable."""
        try:
            async with self.engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception as e:
            logger.error("Failed to connect to database", store=self.name, error=str(e))
            raise
        logger.info("Database connection established", store=self.name, dialect=self.dialect)

    async def create_all(self, base: Type[DeclarativeBase]) -> None:
        """Create every table registered on ``base``"""
        async with self.engine.begin() as conn:
            await conn.run_sync(base.metadata.create_all)

    async def close(self) -> None:
        await self.engine.dispose()
        logger.info("Database connection pool closed", store=self.name)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Transactional session scope.

        Commits when the block exits normally and rolls back on any exception,
        so everything done inside one block is applied atomically.
        """
        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except Exception as e:
            logger.debug(
                "Database session error, rolling back",
                store=self.name,
                error=str(e),
                error_type=type(e).__name__,
            )
            await session.rollback()
            raise
        finally:
            await session.close()

    async def check_health(self) -> dict:
        """
        Check database health status.

        Returns:
            dict: Health status with latency information
        """
        try:
            start = time.perf_counter()
            async with self.session() as session:
                await session.execute(text("SELECT 1"))
            latency_ms = (time.perf_counter() - start) * 1000

            return {
                "status": "healthy",
                "latency_ms": round(latency_ms, 2),
            }
        except Exception as e:
            return {
                "status": "unhealthy",
                "error": str(e),
            }
