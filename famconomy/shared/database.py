"""
Database configuration and utilities for FamConomy
Includes async engine setup, session management, and helper functions
"""

import logging
import os
import time
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    AsyncEngine,
    create_async_engine,
    async_sessionmaker
)
from sqlalchemy import text
from sqlalchemy.pool import NullPool, StaticPool

from .models import Base

logger = logging.getLogger(__name__)


# ============================================================================
# DATABASE URL CONFIGURATION
# ============================================================================

def get_database_url() -> str:
    """
    Construct database URL from environment variables

    Supports:
    - Direct DATABASE_URL (priority)
    - Component-based (DB_HOST, DB_PORT, etc.)
    """
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        # Convert postgres:// to postgresql+asyncpg:// for async support
        if database_url.startswith("postgres://"):
            database_url = database_url.replace("postgres://", "postgresql+asyncpg://", 1)
        elif database_url.startswith("postgresql://"):
            database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return database_url

    DB_USER = os.getenv("DB_USER", "postgres")
    DB_PASSWORD = os.getenv("DB_PASSWORD", "postgres")
    DB_HOST = os.getenv("DB_HOST", "localhost")
    DB_PORT = os.getenv("DB_PORT", "5432")
    DB_NAME = os.getenv("DB_NAME", "famconomy")

    return f"postgresql+asyncpg://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"


# ============================================================================
# ENGINE CONFIGURATION
# ============================================================================

def create_database_engine(
    url: Optional[str] = None,
    pool_size: int = 20,
    max_overflow: int = 40,
    echo: bool = False,
    pool_pre_ping: bool = True,
    pool_recycle: int = 3600,
) -> AsyncEngine:
    """
    Create async database engine

    Args:
        url: Database URL (defaults to get_database_url())
        pool_size: Number of permanent connections
        max_overflow: Additional connections on demand
        echo: Log all SQL queries
        pool_pre_ping: Test connections before use
        pool_recycle: Recycle connections after N seconds

    Returns:
        AsyncEngine configured for the target backend
    """
    if url is None:
        url = get_database_url()

    if url.startswith("sqlite"):
        # A single shared connection keeps in-memory databases alive across sessions
        return create_async_engine(
            url,
            echo=echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )

    if os.getenv("TESTING") == "true":
        return create_async_engine(url, echo=echo, poolclass=NullPool)

    return create_async_engine(
        url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=pool_pre_ping,
        pool_recycle=pool_recycle,
        echo=echo,
        connect_args={
            "server_settings": {
                "application_name": "famconomy_api",
                "timezone": "UTC",
            },
            "command_timeout": 60,
            "timeout": 10,
        },
    )


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory with the settings every FamConomy session uses."""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# ============================================================================
# GLOBAL ENGINE & SESSION FACTORY
# ============================================================================

engine: AsyncEngine = create_database_engine()

AsyncSessionLocal = create_session_factory(engine)


# ============================================================================
# SESSION MANAGEMENT
# ============================================================================

async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency to get database session

    Usage:
        @router.get("/tasks")
        async def list_tasks(session: AsyncSession = Depends(get_session)):
            result = await session.execute(select(Task))
            return result.scalars().all()
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ============================================================================
# DATABASE LIFECYCLE
# ============================================================================

async def init_database(bind: Optional[AsyncEngine] = None) -> None:
    """
    Create all tables (development/testing only; use migrations in production)
    """
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema initialized")


async def close_database() -> None:
    """Close database connections (call on app shutdown)"""
    await engine.dispose()
    logger.info("Database connections closed")


# ============================================================================
# HEALTH CHECK
# ============================================================================

async def check_database_health() -> dict:
    """
    Check database connectivity

    Returns:
        {
            "status": "healthy" | "unhealthy",
            "dialect": "postgresql",
            "response_time_ms": 15.3
        }
    """
    try:
        start_time = time.time()

        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))

        response_time_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "dialect": engine.dialect.name,
            "response_time_ms": round(response_time_ms, 2),
        }

    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return {
            "status": "unhealthy",
            "error": str(e),
        }


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    # Engine & Session
    "engine",
    "AsyncSessionLocal",
    "create_database_engine",
    "create_session_factory",
    "get_session",

    # Lifecycle
    "init_database",
    "close_database",

    # Health
    "check_database_health",
]
