"""
Database Connection and Session Management

This module owns the async SQLAlchemy engine, the table definitions and
the per-request session dependency for the FastAPI application.

Features:
- Async engine with connection pooling (asyncpg in production)
- Explicitly constructed Database object, stored on app.state
- Health checking
- Table verification (and optional creation) at startup

Tables:
- measurements: NanoVNA readings written by the acquisition pipeline.
  This service only reads it.
- derived_records: water content computed by this service, one row per
  processed measurement.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import Request
from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    func,
    inspect,
    text,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

logger = logging.getLogger(__name__)

MEASUREMENTS_TABLE = "measurements"
DERIVED_RECORDS_TABLE = "derived_records"


# =========================================
# Schema
# =========================================

metadata = MetaData()

measurements_table = Table(
    MEASUREMENTS_TABLE,
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("frequency", BigInteger, nullable=False),
    Column("return_loss_db", Float),
    Column("vswr", Float),
    Column("s11_magnitude", Float),
    Column("session_id", String(128)),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
)

# No uniqueness on measurement_id: at-most-one is enforced by the coordinator.
derived_records_table = Table(
    DERIVED_RECORDS_TABLE,
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("measurement_id", Integer, ForeignKey(f"{MEASUREMENTS_TABLE}.id"), nullable=False, index=True),
    Column("return_loss_db", Float, nullable=False),
    Column("water_content_percent", Float),
    Column("frequency", BigInteger),
    Column("session_id", String(128)),
    Column("notes", Text),
    Column(
        "timestamp",
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        index=True,
    ),
)


# =========================================
# Engine and Sessions
# =========================================

class Database:
    """
    Async engine plus session factory for one database URL.

    Built once at application startup and disposed at shutdown.

    Usage:
        database = Database("postgresql+asyncpg://...")
        async with database.session() as session:
            await session.execute(text("SELECT 1"))
        await database.dispose()
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        engine_kwargs: Dict[str, Any] = {"echo": echo, "pool_pre_ping": True}
        if not url.startswith("sqlite"):
            engine_kwargs.update(pool_size=5, max_overflow=10)

        self.engine: AsyncEngine = create_async_engine(url, **engine_kwargs)
        self.session_factory = async_sessionmaker(
            self.engine,
            expire_on_commit=False,
            autoflush=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Context manager yielding a session that is always closed."""
        async with self.session_factory() as session:
            yield session

    async def create_tables(self) -> None:
        """Create any missing tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(metadata.create_all)

    async def missing_tables(self) -> list:
        """Names of the service tables not present in the database."""
        async with self.engine.connect() as conn:
            existing = await conn.run_sync(lambda sync_conn: set(inspect(sync_conn).get_table_names()))
        return [name for name in (MEASUREMENTS_TABLE, DERIVED_RECORDS_TABLE) if name not in existing]

    async def dispose(self) -> None:
        await self.engine.dispose()


# =========================================
# Dependency for FastAPI
# =========================================

async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """
    Dependency that provides a request-scoped database session.

    Usage in FastAPI:
        @router.get("/items")
        async def get_items(db: AsyncSession = Depends(get_db)):
            ...
    """
    database: Database = request.app.state.database
    async with database.session() as session:
        yield session


# =========================================
# Utility Functions
# =========================================

async def check_database_health(database: Optional[Database]) -> Dict[str, Any]:
    """
    Check database health and return status.

    Returns:
        Dictionary with health status information
    """
    if database is None:
        return {"status": "unhealthy", "connected": False, "error": "database not configured"}

    try:
        async with database.session() as session:
            await session.execute(text("SELECT 1"))
        missing = await database.missing_tables()
        return {
            "status": "healthy",
            "connected": True,
            "measurements_table_exists": MEASUREMENTS_TABLE not in missing,
            "derived_records_table_exists": DERIVED_RECORDS_TABLE not in missing,
        }
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Database health check failed: {e}")
        return {
            "status": "unhealthy",
            "connected": False,
            "error": str(e),
        }


async def init_database(database: Database, create_missing: bool = False) -> None:
    """
    Verify the service tables exist, optionally creating them.

    The measurements table normally belongs to the acquisition pipeline;
    creating it here is meant for local development and tests.
    """
    missing = await database.missing_tables()
    if not missing:
        logger.info("Database tables verified")
        return

    if create_missing:
        logger.info(f"Creating missing tables: {', '.join(missing)}")
        await database.create_tables()
    else:
        logger.warning(
            f"Tables not found: {', '.join(missing)}. "
            "Set AUTO_CREATE_TABLES=true or create them before serving traffic"
        )
