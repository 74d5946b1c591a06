"""Async engine, session factory and connection lifecycle.

The schema itself belongs to Alembic. ``create_tables`` only exists for
scratch databases during local development.
"""

from collections.abc import AsyncGenerator
import time

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from clinic_ingest.core.config import settings
from clinic_ingest.utils.logging import get_logger

LOGGER = get_logger(__name__)


class Base(DeclarativeBase):
    """Declarative base shared by every table of the ingestion schema."""


engine = create_async_engine(
    settings.db.connection_url,
    pool_size=settings.db.pool_size,
    max_overflow=settings.db.max_overflow,
    echo=settings.db.echo,
    pool_pre_ping=True,
)

async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session dependency."""
    async with async_session_maker() as session:
        yield session


class DatabaseClient:
    """Owns the engine lifecycle for the API process."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.connected = False

    async def _ping(self) -> float:
        started = time.perf_counter()
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return (time.perf_counter() - started) * 1000

    async def connect(self) -> None:
        """Open a first connection so a bad DATABASE_URL fails at startup."""
        try:
            latency_ms = await self._ping()
        except Exception:
            self.connected = False
            LOGGER.error("Could not reach the database", exc_info=True)
            raise
        self.connected = True
        LOGGER.info(f"Database reachable ({latency_ms:.1f} ms)")

    async def disconnect(self) -> None:
        await self.engine.dispose()
        self.connected = False
        LOGGER.info("Database engine disposed")

    async def create_tables(self) -> None:
        """Create any missing tables from the ORM models."""
        from clinic_ingest.database import models  # noqa: F401  registers tables

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        LOGGER.info(f"Ensured {len(Base.metadata.tables)} tables exist")

    async def health_check(self) -> dict:
        """Report reachability without raising."""
        try:
            latency_ms = await self._ping()
        except Exception as e:
            self.connected = False
            LOGGER.warning("Database health check failed", extra={"error": str(e)})
            return {"status": "unhealthy", "error": str(e)}

        self.connected = True
        return {"status": "healthy", "latency_ms": round(latency_ms, 1)}


db_client = DatabaseClient(engine)


async def init_database(create_tables: bool = False) -> None:
    """Connect at startup and optionally create missing tables."""
    await db_client.connect()
    if create_tables:
        await db_client.create_tables()


async def close_database() -> None:
    await db_client.disconnect()
